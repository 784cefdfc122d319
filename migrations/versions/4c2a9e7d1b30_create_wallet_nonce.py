"""create wallet_nonce

Revision ID: 4c2a9e7d1b30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7d1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'wallet_nonce' in set(insp.get_table_names()):
        return
    op.create_table(
        'wallet_nonce',
        sa.Column('wallet', sa.String(length=128), nullable=False),
        sa.Column('nonce', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('wallet'),
    )


def downgrade():
    op.drop_table('wallet_nonce')
