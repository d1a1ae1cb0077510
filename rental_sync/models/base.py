from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All tables live in the ``rentals`` schema. Engines without schema support
    (SQLite in tests) map it away with ``schema_translate_map``.
    """

    pass
