"""Initial StreamStar schema

Revision ID: 6c1f0a2d9e47
Revises: 
Create Date: 2026-10-18 09:12:31.402118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = '6c1f0a2d9e47'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(JSONB(), 'postgresql')


def upgrade() -> None:
    # Create songs table
    op.create_table(
        'songs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('owner_id', sa.String(128), nullable=False),
        sa.Column('artist_id', sa.String(128), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('is_public', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('current_version_id', sa.String(36), nullable=True),
        sa.Column('album_cover_path', sa.Text, nullable=True),
        sa.Column('album_cover_thumbnail', sa.Text, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()'))
    )

    # Create song_versions table
    op.create_table(
        'song_versions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('song_id', sa.String(36), sa.ForeignKey('songs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version_number', sa.Integer, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('audio_url', sa.Text, nullable=False),
        sa.Column('provider_output_id', sa.String(128), nullable=True),
        sa.Column('is_primary', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('parent_version_id', sa.String(36), nullable=True),
        sa.Column('created_by', sa.String(128), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('song_id', 'provider_output_id', name='uq_song_versions_song_output'),
        sa.UniqueConstraint('song_id', 'version_number', name='uq_song_versions_song_number')
    )
    op.create_index('idx_song_versions_song_id', 'song_versions', ['song_id'])

    # Create generations table
    op.create_table(
        'generations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('song_id', sa.String(36), sa.ForeignKey('songs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('song_version_id', sa.String(36), nullable=True),
        sa.Column('provider', sa.String(50), nullable=False, server_default='musicgpt'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('provider_task_id', sa.String(128), nullable=True),
        sa.Column('provider_conversion_ids', JSONType, nullable=False),
        sa.Column('provider_processed_conversions', JSONType, nullable=False),
        sa.Column('output_audio_url', sa.Text, nullable=True),
        sa.Column('output_stems', JSONType, nullable=True),
        sa.Column('output_metadata', JSONType, nullable=False),
        sa.Column('prompt', sa.Text, nullable=True),
        sa.Column('parameters', JSONType, nullable=False),
        sa.Column('error', sa.Text, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()')),
        sa.Column('completed_at', sa.TIMESTAMP, nullable=True)
    )
    op.create_index('idx_generations_provider_task_id', 'generations', ['provider_task_id'])
    op.create_index('idx_generations_status', 'generations', ['status'])

    # Create generation_conversions lookup table
    op.create_table(
        'generation_conversions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('generation_id', sa.String(36), sa.ForeignKey('generations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('conversion_id', sa.String(128), nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.UniqueConstraint('generation_id', 'conversion_id', name='uq_generation_conversions_pair')
    )
    op.create_index('idx_generation_conversions_conversion_id', 'generation_conversions', ['conversion_id'])

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('type', sa.String(50), nullable=False, server_default='song_ready'),
        sa.Column('song_id', sa.String(36), nullable=True),
        sa.Column('generation_id', sa.String(36), nullable=True),
        sa.Column('read', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()')),
        sa.Column('deleted_at', sa.TIMESTAMP, nullable=True),
        sa.UniqueConstraint('user_id', 'song_id', 'generation_id', 'type', name='uq_notifications_key')
    )
    op.create_index('idx_notifications_user_id', 'notifications', ['user_id'])

    # Create follows table
    op.create_table(
        'follows',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('follower_id', sa.String(128), nullable=False),
        sa.Column('artist_id', sa.String(128), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('follower_id', 'artist_id', name='uq_follows_pair')
    )
    op.create_index('idx_follows_artist_id', 'follows', ['artist_id'])


def downgrade() -> None:
    op.drop_index('idx_follows_artist_id', table_name='follows')
    op.drop_table('follows')
    op.drop_index('idx_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('idx_generation_conversions_conversion_id', table_name='generation_conversions')
    op.drop_table('generation_conversions')
    op.drop_index('idx_generations_status', table_name='generations')
    op.drop_index('idx_generations_provider_task_id', table_name='generations')
    op.drop_table('generations')
    op.drop_index('idx_song_versions_song_id', table_name='song_versions')
    op.drop_table('song_versions')
    op.drop_table('songs')
