# tests/client/test_clients.py
import pytest
from unittest.mock import MagicMock, PropertyMock, patch

from google.api_core import exceptions as google_exceptions

from ficlib.client.claude import ClaudeClient
from ficlib.client.gemini import GeminiClient
from ficlib.client.models import ClientConfig, TranslationOptions
from ficlib.errors import PermanentServiceError


OPTIONS = TranslationOptions(model="test-model")


def claude_response(text: str):
    block = MagicMock()
    block.type = "text"
    block.text = text
    response = MagicMock()
    response.content = [block]
    return response


# ------------------------------------------------------------------
# Claude
# ------------------------------------------------------------------

class TestClaudeClient:

    @pytest.fixture
    def sdk(self):
        with patch("ficlib.client.claude.anthropic.Anthropic") as anthropic_cls:
            yield anthropic_cls.return_value

    @pytest.fixture
    def client(self, sdk):
        return ClaudeClient(ClientConfig(name="claude", api_key="sk-test"))

    def test_translate_batch_parsea_el_array(self, client, sdk):
        sdk.messages.create.return_value = claude_response('["Hola", "Adiós"]')

        result = client.translate_batch(["Hello", "Bye"], "es", "F", OPTIONS)

        assert result == ["Hola", "Adiós"]
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert "system" in kwargs

    def test_longitud_distinta_es_permanente(self, client, sdk):
        sdk.messages.create.return_value = claude_response('["Hola"]')
        with pytest.raises(PermanentServiceError):
            client.translate_batch(["Hello", "Bye"], "es", "F", OPTIONS)

    def test_errores_de_red_se_propagan_para_el_reintento(self, client, sdk):
        sdk.messages.create.side_effect = ConnectionError("connection reset")
        with pytest.raises(ConnectionError):
            client.translate_batch(["Hello"], "es", "F", OPTIONS)

    def test_refine_devuelve_texto_limpio(self, client, sdk):
        sdk.messages.create.return_value = claude_response("```\nHola, amigo\n```")
        text = client.refine("Hello", "Hola", "es", "F", "m", "más cálido", "")
        assert text == "Hola, amigo"

    def test_refine_fail_soft(self, client, sdk):
        sdk.messages.create.side_effect = RuntimeError("overloaded")
        assert client.refine("Hello", "Hola", "es", "F", "m", "x", "") == "Hola"

    def test_identify_fandom_fail_soft(self, client, sdk):
        sdk.messages.create.side_effect = RuntimeError("boom")
        assert client.identify_fandom("sample", "m") == "General"

    def test_glossary_fail_soft(self, client, sdk):
        sdk.messages.create.side_effect = RuntimeError("boom")
        assert client.generate_glossary("F", "es", "m") == ""

    def test_is_configured(self, sdk):
        assert ClaudeClient(ClientConfig(name="claude", api_key="")).is_configured() is False


# ------------------------------------------------------------------
# Gemini
# ------------------------------------------------------------------

class TestGeminiClient:

    @pytest.fixture
    def genai(self):
        with patch("ficlib.client.gemini.genai") as genai_module:
            yield genai_module

    @pytest.fixture
    def client(self, genai):
        return GeminiClient(ClientConfig(name="gemini", api_key="g-test"))

    def model(self, genai):
        return genai.GenerativeModel.return_value

    def test_configura_la_api_key(self, client, genai):
        genai.configure.assert_called_once_with(api_key="g-test")

    def test_translate_batch(self, client, genai):
        self.model(genai).generate_content.return_value.text = '["Hola"]'
        assert client.translate_batch(["Hello"], "es", "F", OPTIONS) == ["Hola"]
        assert genai.GenerativeModel.call_args.kwargs["model_name"] == "test-model"

    def test_invalid_argument_es_permanente(self, client, genai):
        self.model(genai).generate_content.side_effect = (
            google_exceptions.InvalidArgument("bad prompt")
        )
        with pytest.raises(PermanentServiceError):
            client.translate_batch(["Hello"], "es", "F", OPTIONS)

    def test_resource_exhausted_se_propaga(self, client, genai):
        self.model(genai).generate_content.side_effect = (
            google_exceptions.ResourceExhausted("quota")
        )
        with pytest.raises(google_exceptions.ResourceExhausted):
            client.translate_batch(["Hello"], "es", "F", OPTIONS)

    def test_respuesta_bloqueada_es_permanente(self, client, genai):
        response = MagicMock()
        type(response).text = PropertyMock(side_effect=ValueError("blocked"))
        self.model(genai).generate_content.return_value = response
        with pytest.raises(PermanentServiceError):
            client.translate_batch(["Hello"], "es", "F", OPTIONS)

    def test_refine_fail_soft(self, client, genai):
        self.model(genai).generate_content.side_effect = RuntimeError("503")
        assert client.refine("Hello", "Hola", "es", "F", "m", "x", "") == "Hola"

    def test_identify_fandom(self, client, genai):
        self.model(genai).generate_content.return_value.text = "  Naruto \n"
        assert client.identify_fandom("sample", "m") == "Naruto"
