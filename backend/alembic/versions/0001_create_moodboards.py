"""create moodboards table

Revision ID: 0001_create_moodboards
Revises:
Create Date: 2025-08-11
"""
from alembic import op  # type: ignore[import-untyped]
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_create_moodboards'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('moodboards',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('board_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('data', sa.JSON, nullable=False),  # document: objects + name/description
        sa.Column('settings', sa.JSON, nullable=True),  # background, grid, zoom, canvas
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('last_saved_at', sa.DateTime, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_moodboards_board_id', 'moodboards', ['board_id'], unique=True)
    op.create_index('ix_moodboards_board_id_updated_at', 'moodboards', ['board_id', 'updated_at'])
    op.create_index('ix_moodboards_last_saved_at', 'moodboards', ['last_saved_at'])


def downgrade():
    op.drop_index('ix_moodboards_last_saved_at', table_name='moodboards')
    op.drop_index('ix_moodboards_board_id_updated_at', table_name='moodboards')
    op.drop_index('ix_moodboards_board_id', table_name='moodboards')
    op.drop_table('moodboards')
