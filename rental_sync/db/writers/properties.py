from typing import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.engine import Engine

from rental_sync.models.properties import Property

logger = structlog.get_logger(__name__)


def ensure_properties(engine: Engine, codes: Iterable[str]) -> list[str]:
    """
    Insert any configured property codes missing from the properties table.

    Args:
        engine: SQLAlchemy Engine
        codes: Property codes from Settings.property_codes

    Returns:
        list[str]: Codes that were newly inserted
    """
    wanted = sorted(set(codes))
    with engine.begin() as conn:
        existing = set(conn.execute(select(Property.code)).scalars().all())
        missing = [code for code in wanted if code not in existing]
        if missing:
            conn.execute(Property.__table__.insert(), [{"code": code} for code in missing])

    if missing:
        logger.info("properties_seeded", codes=missing)
    return missing
