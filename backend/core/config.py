import logging
import sys

from core.environment import get_env_bool, get_env_float

DEBUG = get_env_bool("DEBUG", False)

# Caller-side defaults. These fill in calculation *options* only and never
# replace a policy rate.
DEFAULT_POWER_FACTOR = get_env_float("DEFAULT_POWER_FACTOR", 0.9, minimum=0.01, maximum=1.0)
DEFAULT_TANK_DEPTH_M = get_env_float("DEFAULT_TANK_DEPTH_M", 2.5, minimum=0.1)

SQFT_PER_SQM = 10.7639


# Logging configuration
def setup_logging():
    """Configure application logging"""
    log_level = logging.DEBUG if DEBUG else logging.INFO

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )

    logger = logging.getLogger('mep_demand')
    logger.setLevel(log_level)

    # SQL echo is only useful when debugging the policy store
    logging.getLogger('sqlalchemy.engine').setLevel(logging.INFO if DEBUG else logging.WARNING)

    return logger
