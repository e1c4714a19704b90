import os
from unittest.mock import patch

from pydantic import ValidationError
import pytest

from content_pipeline.config import Settings


def test_settings_defaults():
    """Tests that settings have usable defaults without any environment."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)
        assert settings.document_title == "Техническое задание"
        assert settings.max_unclosed_tags == 3
        assert settings.min_plain_text_length == 20
        assert settings.diagram_server_url.startswith("https://")
        assert settings.log_level == "INFO"


def test_settings_load_from_env():
    """Tests that settings are correctly loaded from environment variables."""
    env_vars = {
        "CONTENT_PIPELINE_DOCUMENT_TITLE": "Technical Specification",
        "CONTENT_PIPELINE_MAX_UNCLOSED_TAGS": "5",
        "CONTENT_PIPELINE_DIAGRAM_SERVER_URL": "http://localhost:8080/svg/~1",
        "CONTENT_PIPELINE_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars):
        settings = Settings(_env_file=None)
        assert settings.document_title == "Technical Specification"
        assert settings.max_unclosed_tags == 5
        assert settings.diagram_server_url == "http://localhost:8080/svg/~1"
        assert settings.log_level == "DEBUG"


def test_settings_invalid_integer():
    """Tests that a validation error is raised for a non-numeric tolerance."""
    with patch.dict(os.environ, {"CONTENT_PIPELINE_MAX_UNCLOSED_TAGS": "many"}):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
