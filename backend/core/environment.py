"""Environment settings for the demand engine.

Settings come from the process environment, optionally seeded from
``.env`` and then ``.env.local`` in ``MEP_ENV_DIR`` (or the working
directory). A later file overrides an earlier one.
"""

import os
import logging
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./mep_demand.db"

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def load_environment(env_dir: Optional[Union[str, Path]] = None) -> list:
    """Read ``.env`` then ``.env.local`` and return the names of the files found."""
    base = Path(env_dir or os.getenv("MEP_ENV_DIR") or Path.cwd())

    found = []
    for name in (".env", ".env.local"):
        path = base / name
        if path.exists():
            load_dotenv(path, override=True)
            found.append(name)

    if found:
        logger.info(f"Settings loaded from {', '.join(found)} in {base}")
    return found


def get_env_bool(key: str, default: bool = False) -> bool:
    raw = os.getenv(key, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


def get_env_float(key: str, default: float, minimum: Optional[float] = None,
                  maximum: Optional[float] = None) -> float:
    """
    Numeric setting with optional bounds.

    Unparseable or out-of-range values log a warning and fall back to
    ``default``, so a bad override never reaches a calculation.
    """
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"{key}={raw!r} is not a number, using {default}")
        return default

    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        logger.warning(f"{key}={value} is outside [{minimum}, {maximum}], using {default}")
        return default
    return value


def get_database_url() -> str:
    """Policy store URL; a local SQLite file when DATABASE_URL is unset."""
    url = os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
    # Heroku/Render style URLs use the scheme SQLAlchemy dropped
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def is_production() -> bool:
    return os.getenv("ENV", "development").strip().lower() == "production"


load_environment()
