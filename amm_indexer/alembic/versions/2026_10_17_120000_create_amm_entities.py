"""create_amm_entities

Revision ID: 2026_10_17_120000
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '2026_10_17_120000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_LOOKUP_FIELDS = ('transaction_id', 'pair_id', 'token_id')


def upgrade() -> None:
    op.execute('CREATE SCHEMA IF NOT EXISTS domain')
    op.create_table(
        'amm_entities',
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.String(length=256), nullable=False),
        sa.Column('seq', sa.BigInteger(), sa.Identity(always=False), nullable=False),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.PrimaryKeyConstraint('entity_type', 'entity_id'),
        schema='domain',
    )
    for field in _LOOKUP_FIELDS:
        op.create_index(
            f'ix_amm_entities_{field}',
            'amm_entities',
            ['entity_type', sa.text(f"(payload ->> '{field}')"), 'seq'],
            unique=False,
            schema='domain',
        )


def downgrade() -> None:
    for field in _LOOKUP_FIELDS:
        op.drop_index(f'ix_amm_entities_{field}', table_name='amm_entities', schema='domain')
    op.drop_table('amm_entities', schema='domain')
