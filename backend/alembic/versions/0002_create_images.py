"""create images table

Revision ID: 0002_create_images
Revises: 0001_create_moodboards
Create Date: 2025-08-25
"""
from alembic import op  # type: ignore
import sqlalchemy as sa

revision = '0002_create_images'
down_revision = '0001_create_moodboards'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('images',
        sa.Column('id', sa.String(36), primary_key=True),  # uuid4 string
        sa.Column('name', sa.String, nullable=False),
        sa.Column('original_name', sa.String, nullable=False),
        sa.Column('path', sa.String, nullable=False),
        sa.Column('mime_type', sa.String, nullable=False),
        sa.Column('size', sa.BigInteger, nullable=False),
        sa.Column('width', sa.Integer, nullable=False),
        sa.Column('height', sa.Integer, nullable=False),
        sa.Column('hash', sa.String, nullable=True),  # md5, dedup key
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_images_hash', 'images', ['hash'], unique=True)
    op.create_index('ix_images_created_at', 'images', ['created_at'])


def downgrade():
    op.drop_index('ix_images_created_at', table_name='images')
    op.drop_index('ix_images_hash', table_name='images')
    op.drop_table('images')
