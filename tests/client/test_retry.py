# tests/client/test_retry.py
import pytest
from unittest.mock import MagicMock

from ficlib.client.retry import (
    backoff_delay_ms,
    call_with_retry,
    is_retryable,
    status_code_of,
)
from ficlib.errors import (
    ConfigurationError,
    PermanentServiceError,
    TransientServiceError,
)


class FakeAPIError(Exception):
    """Imita los errores de los SDK: status_code como atributo."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


def no_jitter(low, high):
    return 0


# ------------------------------------------------------------------
# Clasificación
# ------------------------------------------------------------------

class TestIsRetryable:

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_status_transitorios(self, status):
        assert is_retryable(FakeAPIError("boom", status)) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_status_permanentes(self, status):
        assert is_retryable(FakeAPIError("boom", status)) is False

    @pytest.mark.parametrize("message", [
        "Rate limit exceeded",
        "429 Resource exhausted",
        "Quota exceeded for project",
        "The model is overloaded",
        "Service Unavailable",
        "Request timed out",
        "Connection reset by peer",
        "TypeError: fetch failed",
    ])
    def test_pistas_en_el_mensaje(self, message):
        assert is_retryable(RuntimeError(message)) is True

    def test_error_generico_no_es_retryable(self):
        assert is_retryable(ValueError("respuesta mal formada")) is False

    def test_errores_propios(self):
        assert is_retryable(TransientServiceError("x")) is True
        assert is_retryable(PermanentServiceError("rate limit")) is False
        assert is_retryable(ConfigurationError("sin api key")) is False

    def test_status_code_desde_code(self):
        error = RuntimeError("x")
        error.code = 503
        assert status_code_of(error) == 503

    def test_status_code_ausente(self):
        assert status_code_of(RuntimeError("x")) is None


# ------------------------------------------------------------------
# Backoff
# ------------------------------------------------------------------

class TestBackoff:

    def test_crece_exponencialmente(self):
        delays = [backoff_delay_ms(a, 2000, no_jitter) for a in range(3)]
        assert delays == [2000, 4000, 8000]

    def test_jitter_acotado(self):
        for attempt in range(4):
            base = 1000 * 2 ** attempt
            delay = backoff_delay_ms(attempt, 1000)
            assert base <= delay <= base + 500


# ------------------------------------------------------------------
# call_with_retry
# ------------------------------------------------------------------

class TestCallWithRetry:

    def test_dos_503_y_luego_exito(self):
        fn = MagicMock(side_effect=[
            FakeAPIError("unavailable", 503),
            FakeAPIError("unavailable", 503),
            ["ok"],
        ])
        sleep = MagicMock()

        result = call_with_retry(fn, max_retries=3, base_delay_ms=2000, sleep=sleep, jitter=no_jitter)

        assert result == ["ok"]
        assert fn.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0]

    def test_siempre_503_relanza_el_original(self):
        error = FakeAPIError("unavailable", 503)
        fn    = MagicMock(side_effect=error)
        sleep = MagicMock()

        with pytest.raises(FakeAPIError) as exc_info:
            call_with_retry(fn, max_retries=3, sleep=sleep, jitter=no_jitter)

        assert exc_info.value is error
        assert fn.call_count == 3
        assert sleep.call_count == 2

    def test_error_permanente_no_se_reintenta(self):
        fn    = MagicMock(side_effect=PermanentServiceError("JSON inválido"))
        sleep = MagicMock()

        with pytest.raises(PermanentServiceError):
            call_with_retry(fn, max_retries=5, sleep=sleep)

        assert fn.call_count == 1
        sleep.assert_not_called()

    def test_400_no_se_reintenta(self):
        fn = MagicMock(side_effect=FakeAPIError("bad request", 400))
        with pytest.raises(FakeAPIError):
            call_with_retry(fn, max_retries=3, sleep=MagicMock())
        assert fn.call_count == 1

    def test_exito_inmediato_no_espera(self):
        sleep = MagicMock()
        assert call_with_retry(lambda: 42, sleep=sleep) == 42
        sleep.assert_not_called()

    def test_max_retries_cero_hace_un_intento(self):
        fn = MagicMock(side_effect=FakeAPIError("overloaded", 503))
        with pytest.raises(FakeAPIError):
            call_with_retry(fn, max_retries=0, sleep=MagicMock())
        assert fn.call_count == 1
