"""Track refunded amount per booking

Revision ID: 0002
Revises: 0001
Create Date: 2025-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: str | None = '0001'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    with op.batch_alter_table('bookings') as batch_op:
        batch_op.add_column(
            sa.Column('refunded_minor_units', sa.Integer(), server_default='0', nullable=False)
        )
        batch_op.create_check_constraint('ck_booking_refunded_non_negative', 'refunded_minor_units >= 0')

    # Bookings already marked refunded were refunded in full
    op.execute(
        "UPDATE bookings SET refunded_minor_units = CAST(ROUND(total_amount * 100) AS INTEGER) "
        "WHERE payment_status = 'refunded'"
    )


def downgrade() -> None:
    """Downgrade database schema."""
    with op.batch_alter_table('bookings') as batch_op:
        batch_op.drop_constraint('ck_booking_refunded_non_negative', type_='check')
        batch_op.drop_column('refunded_minor_units')
