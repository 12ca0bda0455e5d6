# tests/test_factory.py
import pytest
from unittest.mock import patch

from ficlib.client.claude import ClaudeClient
from ficlib.client.gemini import GeminiClient
from ficlib.config import Settings
from ficlib.errors import ConfigurationError
from ficlib.factory import build_auto_backup, build_client, build_repository, build_scheduler
from ficlib.scheduler import BatchScheduler


@pytest.fixture
def settings(tmp_path):
    return Settings(
        gemini_api_key    = "g-test",
        anthropic_api_key = "sk-test",
        db_path           = ":memory:",
        backup_dir        = str(tmp_path),
    )


class TestBuildClient:

    def test_modelo_claude(self, settings):
        with patch("ficlib.client.claude.anthropic.Anthropic"):
            client = build_client("claude-haiku-4-5-20251001", settings)
        assert isinstance(client, ClaudeClient)
        assert client.name == "claude"

    def test_cualquier_otro_modelo_es_gemini(self, settings):
        with patch("ficlib.client.gemini.genai"):
            client = build_client("gemini-2.0-flash", settings)
        assert isinstance(client, GeminiClient)

    def test_sin_api_key(self, settings):
        settings.gemini_api_key = None
        with pytest.raises(ConfigurationError):
            build_client("gemini-2.0-flash", settings)

    def test_sin_modelo(self, settings):
        with pytest.raises(ConfigurationError):
            build_client("", settings)


class TestBuilders:

    def test_build_scheduler(self, settings):
        repo = build_repository(settings)
        with patch("ficlib.client.gemini.genai"):
            scheduler = build_scheduler("gemini-2.0-flash", settings, repo)
        assert isinstance(scheduler, BatchScheduler)
        repo.close()

    def test_auto_backup_desactivado(self, settings):
        repo = build_repository(settings)
        assert build_auto_backup(settings, repo) is None
        repo.close()

    def test_auto_backup_activado(self, settings):
        settings.auto_backup = True
        repo = build_repository(settings)
        backup = build_auto_backup(settings, repo)
        assert backup is not None
        assert backup.is_running is False
        repo.close()
