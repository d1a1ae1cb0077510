"""
SQLAlchemy engine construction with production-ready connection pooling.

The engine is built once from Settings by the application factory (or a CLI
script) and handed to the components that need it.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine


def create_db_engine(database_url: str) -> Engine:
    """
    Create the primary-store engine.

    Args:
        database_url: SQLAlchemy database URL (PostgreSQL in production)

    Returns:
        Engine: Pooled SQLAlchemy engine
    """
    return create_engine(
        database_url,
        future=True,
        pool_size=10,  # Number of connections to maintain in the pool
        max_overflow=20,  # Additional connections when pool is exhausted
        pool_pre_ping=True,  # Verify connections before using (detect stale connections)
        pool_recycle=3600,  # Recycle connections after 1 hour
        connect_args={"connect_timeout": 5},  # Fail fast so the ledger can degrade
        echo=False,
    )


def check_engine_health(engine: Engine) -> bool:
    """
    Check if the primary store is reachable.

    Used by the /ready endpoint before allowing traffic to the service.

    Args:
        engine: SQLAlchemy engine to probe

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
