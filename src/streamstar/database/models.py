"""
StreamStar Database Models
SQLAlchemy ORM models for songs, versions, generations and notifications
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from sqlalchemy import (
    JSON,
    String,
    Integer,
    Boolean,
    Text,
    TIMESTAMP,
    ForeignKey,
    Index,
    UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .connection import Base
from ..core.reconciliation import GenerationOutput, GenerationState, GenerationStatus

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Song(Base):
    """User-owned creative work with a pointer to its current version"""
    __tablename__ = "songs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    artist_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    current_version_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    # Denormalized from provider enrichment, first write wins
    album_cover_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    album_cover_thumbnail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Song(id={self.id}, title='{self.title}', current_version_id={self.current_version_id})>"


class SongVersion(Base):
    """One concrete audio rendering of a song"""
    __tablename__ = "song_versions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    song_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("songs.id", ondelete="CASCADE"),
        nullable=False
    )

    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    audio_url: Mapped[str] = mapped_column(Text, nullable=False)

    # External output id; a repeat within one song means a duplicate delivery
    provider_output_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    parent_version_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("song_id", "provider_output_id", name="uq_song_versions_song_output"),
        UniqueConstraint("song_id", "version_number", name="uq_song_versions_song_number"),
        Index("idx_song_versions_song_id", "song_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<SongVersion(id={self.id}, song_id={self.song_id}, "
            f"version_number={self.version_number}, is_primary={self.is_primary})>"
        )


class Generation(Base):
    """One request to the music provider for one or more output variants"""
    __tablename__ = "generations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    song_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("songs.id", ondelete="CASCADE"),
        nullable=False
    )
    song_version_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    provider: Mapped[str] = mapped_column(String(50), default="musicgpt", nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=GenerationStatus.PENDING.value,
        nullable=False
    )  # pending, processing, completed, failed

    provider_task_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    provider_conversion_ids: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    provider_processed_conversions: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)

    # Output
    output_audio_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    output_stems: Mapped[Optional[List[str]]] = mapped_column(JSONType, nullable=True)
    output_metadata: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)

    # Request
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parameters: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)

    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False, default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP, nullable=True)

    __table_args__ = (
        Index("idx_generations_provider_task_id", "provider_task_id"),
        Index("idx_generations_status", "status"),
    )

    def to_state(self) -> GenerationState:
        """Snapshot the reconciliation-relevant columns"""
        return GenerationState(
            id=self.id,
            song_id=self.song_id,
            status=GenerationStatus(self.status),
            provider_conversion_ids=list(self.provider_conversion_ids or []),
            provider_processed_conversions=list(self.provider_processed_conversions or []),
            output=GenerationOutput.from_wire(
                self.output_audio_url, self.output_stems, self.output_metadata
            ),
            completed_at=self.completed_at,
        )

    def apply_state(self, state: GenerationState) -> None:
        """Write a reduced state back, assigning fresh containers"""
        self.status = state.status.value
        self.provider_conversion_ids = list(state.provider_conversion_ids)
        self.provider_processed_conversions = list(state.provider_processed_conversions)
        self.output_audio_url = state.output.audio_url
        self.output_stems = list(state.output.stems) if state.output.stems is not None else None
        self.output_metadata = state.output.metadata_to_wire()
        self.completed_at = state.completed_at

    def __repr__(self) -> str:
        return f"<Generation(id={self.id}, status='{self.status}', provider_task_id={self.provider_task_id})>"


class GenerationConversion(Base):
    """Lookup rows mirroring generations.provider_conversion_ids for membership queries"""
    __tablename__ = "generation_conversions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    generation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("generations.id", ondelete="CASCADE"),
        nullable=False
    )
    conversion_id: Mapped[str] = mapped_column(String(128), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("generation_id", "conversion_id", name="uq_generation_conversions_pair"),
        Index("idx_generation_conversions_conversion_id", "conversion_id"),
    )

    def __repr__(self) -> str:
        return f"<GenerationConversion(generation_id={self.generation_id}, conversion_id='{self.conversion_id}')>"


class Notification(Base):
    """Fire-once user notification"""
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(50), default="song_ready", nullable=False)
    song_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    generation_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False, default=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "song_id", "generation_id", "type", name="uq_notifications_key"),
        Index("idx_notifications_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type='{self.type}', read={self.read})>"


class Follow(Base):
    """A user following an artist"""
    __tablename__ = "follows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    follower_id: Mapped[str] = mapped_column(String(128), nullable=False)
    artist_id: Mapped[str] = mapped_column(String(128), nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("follower_id", "artist_id", name="uq_follows_pair"),
        Index("idx_follows_artist_id", "artist_id"),
    )

    def __repr__(self) -> str:
        return f"<Follow(follower_id={self.follower_id}, artist_id={self.artist_id})>"
