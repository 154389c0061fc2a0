import logging
from typing import Optional

from sqlmodel import create_engine, SQLModel
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from core.environment import get_database_url, is_production

logger = logging.getLogger(__name__)

# Policy store URL, a local SQLite file unless DATABASE_URL is set
DATABASE_URL = get_database_url()

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def get_database_config(url: str = DATABASE_URL) -> dict:
    """Engine keyword arguments for the policy store at ``url``."""
    if url in IN_MEMORY_URLS:
        # One shared connection, otherwise every session sees an empty database
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}

    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}

    config = {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
        "connect_args": {"application_name": "mep_demand_engine"},
    }
    if is_production():
        config["connect_args"]["sslmode"] = "require"
        logger.info("Policy store: PostgreSQL with SSL")
    return config


def make_engine(url: Optional[str] = None) -> Engine:
    """Create an engine for ``url`` (defaults to DATABASE_URL)."""
    url = url or DATABASE_URL
    return create_engine(url, echo=False, **get_database_config(url))


def create_db_and_tables(engine: Engine) -> None:
    """Create policy store tables"""
    # Table classes register themselves on import
    import models.db_models  # noqa: F401

    SQLModel.metadata.create_all(engine)
