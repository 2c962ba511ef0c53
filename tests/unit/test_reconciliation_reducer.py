"""
Unit tests for the generation reconciliation reducer
Pure state transitions: idempotency verdicts, version planning, completion folding
"""
from datetime import datetime

import pytest

from streamstar.core.reconciliation import (
    CompletionEvent,
    ConversionMetadata,
    GenerationOutput,
    GenerationState,
    GenerationStatus,
    IdempotencyVerdict,
    LyricsEvent,
    album_cover_updates,
    check_idempotency,
    fold_completion,
    fold_lyrics,
    merge_enrichment,
    plan_version,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


def make_state(expected=("c1", "c2"), processed=(), status=GenerationStatus.PROCESSING, **kwargs):
    return GenerationState(
        id="gen-1",
        song_id="song-1",
        status=status,
        provider_conversion_ids=list(expected),
        provider_processed_conversions=list(processed),
        **kwargs
    )


def completion(conversion_id, path=None, **kwargs):
    return CompletionEvent(
        task_id="task-1",
        conversion_id=conversion_id,
        conversion_path=path or f"https://x/{conversion_id}.mp3",
        **kwargs
    )


@pytest.mark.unit
class TestIdempotencyVerdict:
    """Duplicate-delivery checks"""

    def test_fresh_conversion_is_processed(self):
        assert check_idempotency(make_state(), "c1") == IdempotencyVerdict.PROCESS

    def test_already_processed_conversion(self):
        state = make_state(processed=["c1"])
        assert check_idempotency(state, "c1") == IdempotencyVerdict.ALREADY_PROCESSED

    def test_completed_generation_is_terminal(self):
        state = make_state(status=GenerationStatus.COMPLETED)
        assert check_idempotency(state, "c9") == IdempotencyVerdict.GENERATION_COMPLETED

    def test_existing_version_requests_repair(self):
        verdict = check_idempotency(make_state(), "c1", existing_output_ids=["c1"])
        assert verdict == IdempotencyVerdict.VERSION_EXISTS


@pytest.mark.unit
class TestVersionPlanning:
    """Version numbering and primary designation"""

    def test_first_version_is_primary(self):
        plan = plan_version([], "Song Title", None, completion("c1"))

        assert plan.version_number == 1
        assert plan.is_primary is True
        assert plan.title == "Song Title"
        assert plan.parent_version_id is None
        assert plan.provider_output_id == "c1"
        assert plan.audio_url == "https://x/c1.mp3"

    def test_next_number_follows_maximum(self):
        plan = plan_version([1, 4, 2], "Song Title", "v-4", completion("c1", title="Alt Mix"))

        assert plan.version_number == 5
        assert plan.is_primary is False
        assert plan.title == "Alt Mix"
        assert plan.parent_version_id == "v-4"


@pytest.mark.unit
class TestFoldCompletion:
    """Folding completion events into generation state"""

    def test_partial_completion_keeps_processing(self):
        result = fold_completion(make_state(), completion("c1"), NOW)

        assert result.completed_now is False
        assert result.state.status == GenerationStatus.PROCESSING
        assert result.state.provider_processed_conversions == ["c1"]
        assert result.state.output.audio_url is None
        assert result.state.completed_at is None
        assert result.state.output.conversions["c1"].conversion_path == "https://x/c1.mp3"

    def test_partial_completion_leaves_pending_status(self):
        state = make_state(status=GenerationStatus.PENDING)
        result = fold_completion(state, completion("c1"), NOW)

        assert result.state.status == GenerationStatus.PENDING
        assert result.state.provider_processed_conversions == ["c1"]

    def test_final_conversion_completes(self):
        state = fold_completion(make_state(), completion("c1"), NOW).state
        result = fold_completion(state, completion("c2", "https://x/b.mp3"), NOW)

        assert result.completed_now is True
        assert result.state.status == GenerationStatus.COMPLETED
        assert result.state.completed_at == NOW
        assert result.state.output.audio_url == "https://x/b.mp3"
        assert result.state.provider_processed_conversions == ["c1", "c2"]
        assert set(result.state.output.conversions) == {"c1", "c2"}

    def test_order_independence(self):
        forward = fold_completion(make_state(), completion("c1"), NOW).state
        forward = fold_completion(forward, completion("c2"), NOW).state

        backward = fold_completion(make_state(), completion("c2"), NOW).state
        backward = fold_completion(backward, completion("c1"), NOW).state

        assert forward.status == backward.status == GenerationStatus.COMPLETED
        assert set(forward.provider_processed_conversions) == set(backward.provider_processed_conversions)
        assert forward.output.conversions == backward.output.conversions

    def test_repeated_conversion_does_not_duplicate(self):
        state = fold_completion(make_state(), completion("c1"), NOW).state
        state = fold_completion(state, completion("c1"), NOW).state
        assert state.provider_processed_conversions == ["c1"]

    def test_empty_expected_list_completes_on_first_event(self):
        result = fold_completion(make_state(expected=()), completion("solo"), NOW)

        assert result.completed_now is True
        assert result.state.provider_conversion_ids == []
        assert result.state.output.audio_url == "https://x/solo.mp3"

    def test_unexpected_conversion_extends_expected_list(self):
        result = fold_completion(make_state(expected=("c1",)), completion("c9"), NOW)

        assert result.state.provider_conversion_ids == ["c1", "c9"]
        assert result.completed_now is False
        assert set(result.state.provider_processed_conversions) <= set(result.state.provider_conversion_ids)

    def test_metadata_merge_preserves_other_conversions(self):
        output = GenerationOutput(
            conversions={"c2": ConversionMetadata(conversion_path="https://x/old.mp3", title="Keep")},
            extra_metadata={"source": "import"}
        )
        result = fold_completion(make_state(output=output), completion("c1"), NOW)

        assert result.state.output.conversions["c2"].title == "Keep"
        assert result.state.output.extra_metadata == {"source": "import"}

    def test_stems_replace_mode(self):
        state = fold_completion(make_state(), completion("c1", conversion_path_wav="https://x/a.wav"), NOW).state
        assert state.output.stems == ["https://x/a.wav"]

        state = fold_completion(state, completion("c2", conversion_path_wav="https://x/b.wav"), NOW).state
        assert state.output.stems == ["https://x/b.wav"]

    def test_stems_replace_mode_clears_without_wav(self):
        state = fold_completion(make_state(), completion("c1", conversion_path_wav="https://x/a.wav"), NOW).state
        state = fold_completion(state, completion("c2"), NOW).state
        assert state.output.stems is None

    def test_stems_accumulate_mode(self):
        state = fold_completion(
            make_state(), completion("c1", conversion_path_wav="https://x/a.wav"), NOW, "accumulate"
        ).state
        state = fold_completion(
            state, completion("c2", conversion_path_wav="https://x/b.wav"), NOW, "accumulate"
        ).state
        assert state.output.stems == ["https://x/a.wav", "https://x/b.wav"]

    def test_completed_state_stays_completed(self):
        state = make_state(expected=("c1",), processed=("c1",), status=GenerationStatus.COMPLETED)
        result = fold_completion(state, completion("c1"), NOW)

        assert result.state.status == GenerationStatus.COMPLETED
        assert result.completed_now is False


@pytest.mark.unit
class TestLyricsAndEnrichment:
    """Lyrics patches, enrichment merge and album art"""

    def test_fold_lyrics_only_touches_lyrics(self):
        event = LyricsEvent(task_id="task-1", conversion_id="c1", subtype="lyrics", lyrics="la la")
        state = fold_lyrics(make_state(), event, NOW)

        assert state.status == GenerationStatus.PROCESSING
        assert state.provider_processed_conversions == []
        assert state.output.lyrics["c1"].lyrics == "la la"
        assert state.output.lyrics["c1"].updated_at == NOW
        assert state.output.conversions == {}

    def test_merge_enrichment_is_additive(self):
        state = fold_completion(make_state(), completion("c1", title="Take One"), NOW).state
        state = merge_enrichment(state, "c1", {"status": "COMPLETED", "createdAt": "2026-01-01"})

        blob = state.output.conversions["c1"]
        assert blob.title == "Take One"
        assert blob.status == "COMPLETED"
        assert blob.created_at == "2026-01-01"
        assert blob.full_details == {"status": "COMPLETED", "createdAt": "2026-01-01"}
        assert "c2" not in state.output.conversions

    def test_album_cover_first_write_wins(self):
        details = {"album_cover_path": "new.png", "album_cover_thumbnail": "new_thumb.png"}

        assert album_cover_updates(None, None, details) == {
            "album_cover_path": "new.png",
            "album_cover_thumbnail": "new_thumb.png",
        }
        assert album_cover_updates("old.png", None, details) == {"album_cover_thumbnail": "new_thumb.png"}
        assert album_cover_updates("old.png", "old_thumb.png", details) == {}
        assert album_cover_updates(None, None, {}) == {}


@pytest.mark.unit
class TestMetadataWireFormat:
    """conversion_<id> keyed metadata at the storage boundary"""

    def test_from_wire_splits_conversions_lyrics_and_unknown_keys(self):
        metadata = {
            "conversion_c1": {"conversion_path": "https://x/a.mp3", "fullDetails": {"k": 1}},
            "conversion_c1_lyrics": {"lyrics": "words", "subtype": "lyrics"},
            "model": "v2",
        }
        output = GenerationOutput.from_wire(None, None, metadata)

        assert output.conversions["c1"].conversion_path == "https://x/a.mp3"
        assert output.conversions["c1"].full_details == {"k": 1}
        assert output.lyrics["c1"].lyrics == "words"
        assert output.extra_metadata == {"model": "v2"}

    def test_to_wire_uses_original_keys(self):
        output = GenerationOutput(
            conversions={"c1": ConversionMetadata(conversion_path="https://x/a.mp3", full_details={"k": 1})},
            extra_metadata={"model": "v2"}
        )
        wire = output.metadata_to_wire()

        assert wire == {
            "model": "v2",
            "conversion_c1": {"conversion_path": "https://x/a.mp3", "fullDetails": {"k": 1}},
        }

    def test_unknown_blob_fields_survive(self):
        metadata = {"conversion_c1": {"conversion_path": "https://x/a.mp3", "bpm": 120}}
        output = GenerationOutput.from_wire(None, None, metadata)
        assert output.metadata_to_wire()["conversion_c1"]["bpm"] == 120
