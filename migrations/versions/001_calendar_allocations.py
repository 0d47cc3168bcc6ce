"""Calendar allocations: one row per calendar day.

day_key is the primary key and uses the "C" collation so that month range
scans (day_key BETWEEN 'YYYY-MM-01' AND 'YYYY-MM-31') follow byte order.

Revision ID: 001_calendar_allocations
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op

revision = "001_calendar_allocations"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE calendar_allocations (
            day_key text COLLATE "C" PRIMARY KEY
                CHECK (day_key ~ '^[0-9]{4}-[0-9]{2}-[0-9]{2}$'),
            owner_id text NULL,
            range_start timestamp NOT NULL,
            range_end timestamp NOT NULL,
            occupancy_count integer NOT NULL DEFAULT 0 CHECK (occupancy_count >= 0),
            kind text NOT NULL CHECK (kind IN ('booking', 'blocked')),
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT calendar_allocations_range_check CHECK (range_end > range_start),
            CONSTRAINT calendar_allocations_owner_check CHECK (
                (kind = 'booking' AND owner_id IS NOT NULL)
                OR (kind = 'blocked' AND owner_id IS NULL AND occupancy_count = 0)
            )
        )
        """
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS calendar_allocations")
