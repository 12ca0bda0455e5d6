# tests/test_config.py
import pytest

from ficlib.config import Settings, load_settings
from ficlib.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for var in ("GEMINI_API_KEY", "API_KEY", "ANTHROPIC_API_KEY", "FICLIB_DB_PATH"):
        monkeypatch.delenv(var, raising=False)
    # Nunca leer la config real del usuario
    monkeypatch.setenv("FICLIB_CONFIG_PATH", str(tmp_path / "no-existe.yaml"))


class TestLoadSettings:

    def test_sin_archivo_usa_defaults(self):
        settings = load_settings()
        assert settings == Settings()

    def test_ruta_explicita_inexistente(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(str(tmp_path / "falta.yaml"))

    def test_lee_yaml(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text(
            "default_model: claude-haiku-4-5-20251001\n"
            "batch_size: 8\n"
            "similarity_threshold: 35\n",
            encoding="utf-8",
        )
        settings = load_settings(str(config))
        assert settings.default_model == "claude-haiku-4-5-20251001"
        assert settings.batch_size == 8
        assert settings.similarity_threshold == 35
        assert settings.context_window == 2

    def test_expande_variables_de_entorno(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_GEMINI", "g-123")
        config = tmp_path / "config.yaml"
        config.write_text("gemini_api_key: ${MY_GEMINI}\n", encoding="utf-8")
        assert load_settings(str(config)).gemini_api_key == "g-123"

    def test_api_keys_desde_el_entorno(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "legacy-key")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        settings = load_settings()
        assert settings.gemini_api_key == "legacy-key"
        assert settings.anthropic_api_key == "sk-ant"

    def test_claves_desconocidas_se_ignoran(self, tmp_path, caplog):
        config = tmp_path / "config.yaml"
        config.write_text("batch_size: 4\nfoo: bar\n", encoding="utf-8")
        settings = load_settings(str(config))
        assert settings.batch_size == 4
        assert "foo" in caplog.text

    def test_yaml_que_no_es_mapa(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_settings(str(config))

    def test_archivo_vacio(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("", encoding="utf-8")
        assert load_settings(str(config)) == Settings()
