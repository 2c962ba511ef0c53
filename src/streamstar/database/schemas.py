"""
StreamStar Pydantic Schemas
Request/response models for API validation and serialization
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


# Base configuration for all schemas
class BaseSchema(BaseModel):
    """Base schema with common configuration"""
    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        validate_assignment=True,
        arbitrary_types_allowed=True
    )


# Webhook Schemas
class MusicGPTWebhookPayload(BaseModel):
    """Inbound provider callback; both completion and lyrics shapes share it"""
    model_config = ConfigDict(extra="allow")

    task_id: Optional[str] = None
    conversion_id: Optional[str] = None
    conversion_path: Optional[str] = None
    conversion_path_wav: Optional[str] = None
    conversion_duration: Optional[float] = None
    is_flagged: Optional[bool] = None
    lyrics: Optional[str] = None
    lyrics_timestamped: Optional[Any] = None
    title: Optional[str] = None
    subtype: Optional[str] = None


class WebhookAck(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    error: str


# Song Schemas
class SongResponse(BaseSchema):
    """Schema for song responses"""
    id: str
    owner_id: str
    artist_id: Optional[str] = None
    title: str
    is_public: bool
    current_version_id: Optional[str] = None
    album_cover_path: Optional[str] = None
    album_cover_thumbnail: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SongVersionResponse(BaseSchema):
    """Schema for song version responses"""
    id: str
    song_id: str
    version_number: int
    title: str
    audio_url: str
    provider_output_id: Optional[str] = None
    is_primary: bool
    parent_version_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class SetPrimaryVersionRequest(BaseSchema):
    """Schema for promoting a song version"""
    version_id: str = Field(..., min_length=1, description="Version to make primary")


# Generation Schemas
class GenerationCreate(BaseSchema):
    """Schema for submitting a generation"""
    song_id: str = Field(..., min_length=1, description="Target song")
    prompt: str = Field(..., min_length=1, max_length=2000, description="Text prompt for the provider")
    provider: str = Field(default="musicgpt", description="Generation provider")
    lyrics: Optional[str] = Field(None, description="Optional lyrics")
    music_style: Optional[str] = Field(None, max_length=255, description="Optional style hint")
    is_instrumental: bool = Field(default=False, description="Generate without vocals")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Extra provider parameters")


class GenerationResponse(BaseSchema):
    """Schema for generation responses"""
    id: str
    song_id: str
    song_version_id: Optional[str] = None
    provider: str
    status: str
    provider_task_id: Optional[str] = None
    provider_conversion_ids: List[str] = Field(default_factory=list)
    provider_processed_conversions: List[str] = Field(default_factory=list)
    output_audio_url: Optional[str] = None
    output_stems: Optional[List[str]] = None
    output_metadata: Dict[str, Any] = Field(default_factory=dict)
    prompt: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


# Notification Schemas
class NotificationResponse(BaseSchema):
    """Schema for notification responses"""
    id: str
    user_id: str
    type: str
    song_id: Optional[str] = None
    generation_id: Optional[str] = None
    read: bool
    created_at: datetime


# Provider Schemas
class ConversionDetailsResponse(BaseSchema):
    """Provider detail lookup, passed through to the caller"""
    success: bool
    conversion: Dict[str, Any] = Field(default_factory=dict)


# Health Schemas
class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    database: str
