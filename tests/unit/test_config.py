"""
Unit tests for StreamStar configuration
Tests settings validation, derived values, and configuration methods
"""
import pytest
from pydantic import ValidationError

from streamstar.core.config import StreamStarSettings


@pytest.mark.unit
class TestConfigurationSystem:
    """Test core configuration functionality"""

    def test_default_reconciliation_values(self):
        settings = StreamStarSettings(_env_file=None)

        assert settings.STEMS_MODE == "replace"
        assert settings.NOTIFY_FOLLOWERS_ON_COMPLETION is False
        assert settings.GENERATION_LOCK_BACKEND == "local"
        assert settings.MUSICGPT_CONVERSION_TYPE == "MUSIC_AI"

    def test_stems_mode_validation(self):
        settings = StreamStarSettings(_env_file=None, STEMS_MODE="ACCUMULATE")
        assert settings.STEMS_MODE == "accumulate"

        with pytest.raises(ValidationError):
            StreamStarSettings(_env_file=None, STEMS_MODE="merge")

        assert settings.validate_stems_mode("replace") is True
        assert settings.validate_stems_mode("merge") is False

    def test_lock_backend_validation(self):
        assert StreamStarSettings(_env_file=None, GENERATION_LOCK_BACKEND="Redis").GENERATION_LOCK_BACKEND == "redis"

        with pytest.raises(ValidationError):
            StreamStarSettings(_env_file=None, GENERATION_LOCK_BACKEND="zookeeper")

    def test_webhook_header_and_callback(self):
        settings = StreamStarSettings(
            _env_file=None,
            WEBHOOK_PROVIDER="MusicGPT",
            WEBHOOK_BASE_URL="https://streamstar.example/"
        )

        assert settings.webhook_signature_header == "x-musicgpt-signature"
        assert settings.webhook_callback_url == "https://streamstar.example/api/webhooks/musicgpt"

    def test_callback_url_absent_without_base(self):
        assert StreamStarSettings(_env_file=None, WEBHOOK_BASE_URL=None).webhook_callback_url is None

    def test_configuration_methods(self):
        settings = StreamStarSettings(_env_file=None, MUSICGPT_API_KEY=None, ENRICHMENT_TIMEOUT_SECONDS=3)

        provider_config = settings.get_provider_config()
        assert provider_config["api_key_configured"] is False
        assert provider_config["conversion_type"] == "MUSIC_AI"

        reconciliation_config = settings.get_reconciliation_config()
        assert reconciliation_config["enrichment_timeout"] == 3
        assert reconciliation_config["stems_mode"] == "replace"
        assert reconciliation_config["unmatched_retry_delay"] == 2.0

    def test_development_flags(self):
        settings = StreamStarSettings(_env_file=None, DEBUG=True)
        assert settings.is_development is True
        assert settings.is_production is False
