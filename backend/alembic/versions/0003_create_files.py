"""create files table

Revision ID: 0003_create_files
Revises: 0002_create_images
Create Date: 2025-08-25
"""
from alembic import op  # type: ignore
import sqlalchemy as sa

revision = '0003_create_files'
down_revision = '0002_create_images'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('files',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String, nullable=False),  # display / original name
        sa.Column('filename', sa.String, nullable=False),  # name on disk
        sa.Column('path', sa.String, nullable=False),
        sa.Column('mime_type', sa.String, nullable=False),
        sa.Column('size', sa.BigInteger, nullable=False),
        sa.Column('extension', sa.String, nullable=True),
        sa.Column('hash', sa.String, nullable=True),  # sha256, dedup key
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_files_hash', 'files', ['hash'], unique=True)
    op.create_index('ix_files_mime_type', 'files', ['mime_type'])
    op.create_index('ix_files_created_at', 'files', ['created_at'])


def downgrade():
    op.drop_index('ix_files_created_at', table_name='files')
    op.drop_index('ix_files_mime_type', table_name='files')
    op.drop_index('ix_files_hash', table_name='files')
    op.drop_table('files')
