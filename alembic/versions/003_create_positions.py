"""003: create positions table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE positions (
            id                      VARCHAR(64)      PRIMARY KEY,
            user_id                 VARCHAR(64)      NOT NULL,
            direction               VARCHAR(8)       NOT NULL,
            entry_price             DOUBLE PRECISION NOT NULL,
            target_price            DOUBLE PRECISION NOT NULL,
            zone_low                DOUBLE PRECISION NOT NULL,
            zone_high               DOUBLE PRECISION NOT NULL,
            collateral              BIGINT           NOT NULL,
            leverage                INT              NOT NULL,
            placed_at               TIMESTAMPTZ      NOT NULL,
            expires_at              TIMESTAMPTZ      NOT NULL,
            status                  VARCHAR(8)       NOT NULL DEFAULT 'ACTIVE',
            settled                 BOOLEAN          NOT NULL DEFAULT FALSE,
            settlement_attempts     INT              NOT NULL DEFAULT 0,
            venue_ref               VARCHAR(128),
            close_ref               VARCHAR(128),
            realized_pnl            BIGINT,
            resolved_at             TIMESTAMPTZ,
            resolved_price          DOUBLE PRECISION,
            last_settlement_error   TEXT,
            needs_manual_settlement BOOLEAN          NOT NULL DEFAULT FALSE,
            created_at              TIMESTAMPTZ      NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ      NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_positions_direction  CHECK (direction IN ('UP', 'DOWN')),
            CONSTRAINT ck_positions_status     CHECK (status IN ('ACTIVE', 'WON', 'LOST')),
            CONSTRAINT ck_positions_collateral CHECK (collateral > 0),
            CONSTRAINT ck_positions_leverage   CHECK (leverage BETWEEN 5 AND 50),
            CONSTRAINT ck_positions_settled    CHECK (NOT settled OR status <> 'ACTIVE')
        );
    """)
    op.execute("CREATE INDEX idx_positions_user ON positions (user_id, placed_at DESC);")
    op.execute("""
        CREATE INDEX idx_positions_unsettled ON positions (resolved_at)
            WHERE status <> 'ACTIVE' AND NOT settled;
    """)
    op.execute("""
        CREATE TRIGGER trg_positions_updated_at
            BEFORE UPDATE ON positions
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS positions CASCADE;")
