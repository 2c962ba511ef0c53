"""
Generation Reconciliation Reducer
Pure state transitions folding provider webhook events into a generation

Everything in this module is side-effect free: the service layer loads a
``GenerationState`` snapshot, asks the reducer what to do, and persists the
returned state. Folding is commutative over distinct conversion ids and
idempotent over repeated ones, so out-of-order and duplicated deliveries
converge on the same final state.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field


CONVERSION_KEY_PREFIX = "conversion_"
LYRICS_KEY_SUFFIX = "_lyrics"

LYRICS_SUBTYPES = ("lyrics", "lyrics_timestamped")


class GenerationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class IdempotencyVerdict(str, Enum):
    """Outcome of the duplicate-delivery checks for one conversion event"""
    PROCESS = "process"
    ALREADY_PROCESSED = "already_processed"
    GENERATION_COMPLETED = "generation_completed"
    VERSION_EXISTS = "version_exists"


def conversion_key(conversion_id: str) -> str:
    return f"{CONVERSION_KEY_PREFIX}{conversion_id}"


def lyrics_key(conversion_id: str) -> str:
    return f"{CONVERSION_KEY_PREFIX}{conversion_id}{LYRICS_KEY_SUFFIX}"


# ============================================================================
# METADATA MODEL
# ============================================================================

class ConversionMetadata(BaseModel):
    """Per-output metadata stored under ``conversion_<id>``"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    conversion_path: Optional[str] = None
    title: Optional[str] = None
    conversion_path_wav: Optional[str] = None
    conversion_duration: Optional[float] = None
    lyrics: Optional[str] = None
    lyrics_timestamped: Optional[Any] = None
    # Enrichment fields from the provider details call
    status: Optional[str] = None
    created_at: Optional[Any] = None
    updated_at: Optional[Any] = None
    full_details: Optional[Dict[str, Any]] = Field(default=None, alias="fullDetails")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LyricsUpdate(BaseModel):
    """Lyrics payload stored under ``conversion_<id>_lyrics``"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    lyrics_timestamped: Optional[Any] = None
    lyrics: Optional[str] = None
    subtype: Optional[str] = None
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GenerationOutput(BaseModel):
    """Typed view over a generation's output and its open metadata map"""

    audio_url: Optional[str] = None
    stems: Optional[List[str]] = None
    conversions: Dict[str, ConversionMetadata] = Field(default_factory=dict)
    lyrics: Dict[str, LyricsUpdate] = Field(default_factory=dict)
    # Keys that are not conversion blobs are carried through untouched
    extra_metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_wire(
        cls,
        audio_url: Optional[str],
        stems: Optional[List[str]],
        metadata: Optional[Mapping[str, Any]]
    ) -> "GenerationOutput":
        conversions: Dict[str, ConversionMetadata] = {}
        lyrics: Dict[str, LyricsUpdate] = {}
        extra: Dict[str, Any] = {}

        for key, value in (metadata or {}).items():
            if not key.startswith(CONVERSION_KEY_PREFIX) or not isinstance(value, dict):
                extra[key] = value
                continue

            conversion_id = key[len(CONVERSION_KEY_PREFIX):]
            if conversion_id.endswith(LYRICS_KEY_SUFFIX):
                lyrics[conversion_id[:-len(LYRICS_KEY_SUFFIX)]] = LyricsUpdate.model_validate(value)
            else:
                conversions[conversion_id] = ConversionMetadata.model_validate(value)

        return cls(
            audio_url=audio_url,
            stems=list(stems) if stems is not None else None,
            conversions=conversions,
            lyrics=lyrics,
            extra_metadata=extra,
        )

    def metadata_to_wire(self) -> Dict[str, Any]:
        metadata: Dict[str, Any] = dict(self.extra_metadata)
        for conversion_id, blob in self.conversions.items():
            metadata[conversion_key(conversion_id)] = blob.to_wire()
        for conversion_id, update in self.lyrics.items():
            metadata[lyrics_key(conversion_id)] = update.to_wire()
        return metadata


# ============================================================================
# STATE AND EVENTS
# ============================================================================

class GenerationState(BaseModel):
    """Snapshot of the reconciliation-relevant fields of one generation"""

    id: str
    song_id: str
    status: GenerationStatus = GenerationStatus.PENDING
    provider_conversion_ids: List[str] = Field(default_factory=list)
    provider_processed_conversions: List[str] = Field(default_factory=list)
    output: GenerationOutput = Field(default_factory=GenerationOutput)
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == GenerationStatus.COMPLETED

    def has_processed(self, conversion_id: str) -> bool:
        return conversion_id in self.provider_processed_conversions


class CompletionEvent(BaseModel):
    """A validated conversion-completion webhook"""

    task_id: str
    conversion_id: str
    conversion_path: str
    conversion_path_wav: Optional[str] = None
    conversion_duration: Optional[float] = None
    lyrics: Optional[str] = None
    lyrics_timestamped: Optional[Any] = None
    title: Optional[str] = None

    def to_metadata(self) -> ConversionMetadata:
        return ConversionMetadata(
            conversion_path=self.conversion_path,
            title=self.title or None,
            conversion_path_wav=self.conversion_path_wav or None,
            conversion_duration=self.conversion_duration,
            lyrics=self.lyrics or None,
            lyrics_timestamped=self.lyrics_timestamped or None,
        )


class LyricsEvent(BaseModel):
    """A validated lyrics-only webhook"""

    task_id: str
    conversion_id: str
    subtype: str
    lyrics: Optional[str] = None
    lyrics_timestamped: Optional[Any] = None


class VersionPlan(BaseModel):
    """Everything needed to insert the song version for one conversion"""

    version_number: int
    is_primary: bool
    title: str
    parent_version_id: Optional[str]
    audio_url: str
    provider_output_id: str


class CompletionResult(BaseModel):
    state: GenerationState
    completed_now: bool


# ============================================================================
# TRANSITIONS
# ============================================================================

def check_idempotency(
    state: GenerationState,
    conversion_id: str,
    existing_output_ids: Sequence[str] = ()
) -> IdempotencyVerdict:
    """Decide whether a conversion event still needs processing"""
    if state.has_processed(conversion_id):
        return IdempotencyVerdict.ALREADY_PROCESSED
    if state.is_completed:
        return IdempotencyVerdict.GENERATION_COMPLETED
    if conversion_id in existing_output_ids:
        # Version was written but the generation update was lost
        return IdempotencyVerdict.VERSION_EXISTS
    return IdempotencyVerdict.PROCESS


def plan_version(
    existing_version_numbers: Sequence[int],
    song_title: str,
    current_version_id: Optional[str],
    event: CompletionEvent
) -> VersionPlan:
    """Number the next version; the first version a song ever gets is primary"""
    next_number = max(existing_version_numbers, default=0) + 1
    return VersionPlan(
        version_number=next_number,
        is_primary=len(existing_version_numbers) == 0,
        title=event.title or song_title,
        parent_version_id=current_version_id,
        audio_url=event.conversion_path,
        provider_output_id=event.conversion_id,
    )


def _merge_stems(current: Optional[List[str]], wav_path: Optional[str], stems_mode: str) -> Optional[List[str]]:
    if stems_mode == "accumulate":
        if not wav_path:
            return current
        stems = list(current or [])
        if wav_path not in stems:
            stems.append(wav_path)
        return stems
    # "replace" keeps the single-element overwrite, including clearing on a wav-less event
    return [wav_path] if wav_path else None


def fold_completion(
    state: GenerationState,
    event: CompletionEvent,
    now: datetime,
    stems_mode: str = "replace"
) -> CompletionResult:
    """Fold one completed output into the generation.

    Appends the conversion to the processed set, merges its metadata blob
    without touching other conversions, and marks the generation completed
    once every expected conversion has been processed. ``output.audio_url``
    and ``completed_at`` only change on that final transition.
    """
    cid = event.conversion_id

    processed = list(state.provider_processed_conversions)
    if cid not in processed:
        processed.append(cid)

    # Keep processed a subset of expected when expectations are known
    expected = list(state.provider_conversion_ids)
    if expected and cid not in expected:
        expected.append(cid)

    conversions = dict(state.output.conversions)
    incoming = event.to_metadata()
    previous = conversions.get(cid)
    if previous is not None:
        incoming = previous.model_copy(update=incoming.model_dump(exclude_none=True))
    conversions[cid] = incoming

    fully_processed = (
        all(expected_id in processed for expected_id in expected) if expected else True
    )

    # Partial completion leaves the status as it was
    status = GenerationStatus.COMPLETED if state.is_completed or fully_processed else state.status

    completed_now = status == GenerationStatus.COMPLETED and not state.is_completed

    output = state.output.model_copy(update={
        "audio_url": event.conversion_path if completed_now else state.output.audio_url,
        "stems": _merge_stems(state.output.stems, event.conversion_path_wav, stems_mode),
        "conversions": conversions,
    })

    new_state = state.model_copy(update={
        "status": status,
        "provider_conversion_ids": expected,
        "provider_processed_conversions": processed,
        "output": output,
        "completed_at": now if completed_now else state.completed_at,
    })
    return CompletionResult(state=new_state, completed_now=completed_now)


def fold_lyrics(state: GenerationState, event: LyricsEvent, now: datetime) -> GenerationState:
    """Patch lyrics metadata only; never touches status, versions or audio"""
    lyrics = dict(state.output.lyrics)
    lyrics[event.conversion_id] = LyricsUpdate(
        lyrics_timestamped=event.lyrics_timestamped,
        lyrics=event.lyrics,
        subtype=event.subtype,
        updated_at=now,
    )
    output = state.output.model_copy(update={"lyrics": lyrics})
    return state.model_copy(update={"output": output})


def merge_enrichment(
    state: GenerationState,
    conversion_id: str,
    details: Mapping[str, Any]
) -> GenerationState:
    """Add provider detail fields to one conversion's blob"""
    conversions = dict(state.output.conversions)
    blob = conversions.get(conversion_id) or ConversionMetadata()

    updates: Dict[str, Any] = {"full_details": dict(details)}
    if details.get("status"):
        updates["status"] = details["status"]
    if details.get("createdAt"):
        updates["created_at"] = details["createdAt"]
    if details.get("updatedAt"):
        updates["updated_at"] = details["updatedAt"]

    conversions[conversion_id] = blob.model_copy(update=updates)
    output = state.output.model_copy(update={"conversions": conversions})
    return state.model_copy(update={"output": output})


def album_cover_updates(
    current_path: Optional[str],
    current_thumbnail: Optional[str],
    details: Mapping[str, Any]
) -> Dict[str, str]:
    """First-write-wins album art: only fill fields the song does not have yet"""
    updates: Dict[str, str] = {}
    path = details.get("album_cover_path")
    thumbnail = details.get("album_cover_thumbnail")
    if path and not current_path:
        updates["album_cover_path"] = path
    if thumbnail and not current_thumbnail:
        updates["album_cover_thumbnail"] = thumbnail
    return updates
