"""Create properties, webhook_events and reservations tables

Revision ID: 3f1c9a27b8d4
Revises:
Create Date: 2025-08-02 10:12:31.204117

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f1c9a27b8d4"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "rentals"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "properties",
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("code"),
        schema=SCHEMA,
    )
    op.create_table(
        "webhook_events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
        schema=SCHEMA,
    )
    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("property_code", sa.String(length=16), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("contact_email", sa.String(), nullable=True),
        sa.Column("amount", sa.BigInteger(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("start_date < end_date", name="ck_reservations_start_before_end"),
        sa.ForeignKeyConstraint(["property_code"], [f"{SCHEMA}.properties.code"]),
        sa.ForeignKeyConstraint(["event_id"], [f"{SCHEMA}.webhook_events.event_id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_reservations_property_start",
        "reservations",
        ["property_code", "start_date"],
        schema=SCHEMA,
    )

    # Overlapping stays for one property are rejected by the database as well
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute(
        f"""
        ALTER TABLE {SCHEMA}.reservations
        ADD CONSTRAINT ex_reservations_no_overlap
        EXCLUDE USING gist (
            property_code WITH =,
            daterange(start_date, end_date, '[)') WITH &&
        )
        """
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.execute(
        f"ALTER TABLE {SCHEMA}.reservations DROP CONSTRAINT IF EXISTS ex_reservations_no_overlap"
    )
    op.drop_index("ix_reservations_property_start", table_name="reservations", schema=SCHEMA)
    op.drop_table("reservations", schema=SCHEMA)
    op.drop_table("webhook_events", schema=SCHEMA)
    op.drop_table("properties", schema=SCHEMA)
