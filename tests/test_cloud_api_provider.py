"""
Tests for CloudApiProvider - Graph API sends, retry, circuit breaker, simulation mode

Covers:
- payload and endpoint of a successful send
- retry with backoff on transient status codes, timeouts and network errors
- WhatsAppError once retries are exhausted
- simulation mode without credentials
- provider factory singleton
"""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from httpx import Response

from constituent_bot.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from constituent_bot.core.config import settings
from constituent_bot.core.exceptions import CircuitBreakerOpenError, WhatsAppError
from constituent_bot.domain.services.whatsapp import get_whatsapp_provider, reset_providers
from constituent_bot.domain.services.whatsapp.cloud_api_provider import CloudApiProvider
from constituent_bot.state_machine import replies
from constituent_bot.state_machine.messages import TextMessage


def _response(status_code: int, text: str = "") -> MagicMock:
    response = MagicMock(spec=Response)
    response.status_code = status_code
    response.text = text
    return response


def _mock_client(*results):
    """httpx.AsyncClient stand-in whose post() yields ``results`` in order"""
    mock_instance = AsyncMock()
    mock_instance.post = AsyncMock(side_effect=list(results))
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=None)
    return mock_instance


@pytest.fixture
def credentials():
    with patch.object(settings, "WHATSAPP_CLOUD_API_TOKEN", "test-token"), \
            patch.object(settings, "WHATSAPP_CLOUD_API_PHONE_ID", "1234567890"):
        yield


@pytest.fixture
def no_sleep():
    with patch(
        "constituent_bot.domain.services.whatsapp.cloud_api_provider.asyncio.sleep",
        new_callable=AsyncMock,
    ) as sleep:
        yield sleep


def _make_provider(failure_threshold: int = 5) -> CloudApiProvider:
    cb = CircuitBreaker("test_cloud_api", CircuitBreakerConfig(failure_threshold=failure_threshold))
    return CloudApiProvider(circuit_breaker=cb)


class TestCloudApiSend:

    @pytest.mark.unit
    async def test_send_text_success(self, credentials):
        provider = _make_provider()
        client = _mock_client(_response(200))

        with patch("httpx.AsyncClient", return_value=client):
            await provider.send_text("+91 98765 43210", "Vanakkam")

        client.post.assert_awaited_once()
        url = client.post.call_args[0][0]
        kwargs = client.post.call_args[1]
        assert url == "https://graph.facebook.com/v21.0/1234567890/messages"
        assert kwargs["headers"] == {"Authorization": "Bearer test-token"}
        assert kwargs["json"]["to"] == "919876543210"
        assert kwargs["json"]["text"]["body"] == "Vanakkam"

    @pytest.mark.unit
    async def test_send_interactive_list(self, credentials, identity):
        provider = _make_provider()
        client = _mock_client(_response(200))

        with patch("httpx.AsyncClient", return_value=client):
            await provider.send_message("919876543210", replies.verified_menu(identity))

        payload = client.post.call_args[1]["json"]
        assert payload["type"] == "interactive"
        assert payload["interactive"]["type"] == "list"

    @pytest.mark.unit
    async def test_transient_status_is_retried(self, credentials, no_sleep):
        provider = _make_provider()
        client = _mock_client(_response(503), _response(429), _response(200))

        with patch("httpx.AsyncClient", return_value=client):
            await provider.send_message("919876543210", TextMessage("hi"))

        assert client.post.await_count == 3
        assert [c.args[0] for c in no_sleep.await_args_list] == [1, 2]

    @pytest.mark.unit
    async def test_timeout_then_success(self, credentials, no_sleep):
        provider = _make_provider()
        client = _mock_client(httpx.ReadTimeout("slow"), _response(200))

        with patch("httpx.AsyncClient", return_value=client):
            await provider.send_message("919876543210", TextMessage("hi"))

        assert client.post.await_count == 2

    @pytest.mark.unit
    async def test_retries_exhausted_raises(self, credentials, no_sleep):
        provider = _make_provider()
        client = _mock_client(_response(502), _response(502), _response(502, "bad gateway"))

        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(WhatsAppError) as exc_info:
                await provider.send_message("919876543210", TextMessage("hi"))

        assert exc_info.value.details["status_code"] == 502
        assert exc_info.value.details["response_text"] == "bad gateway"

    @pytest.mark.unit
    async def test_network_error_exhausted_raises(self, credentials, no_sleep):
        provider = _make_provider()
        error = httpx.ConnectError("refused")
        client = _mock_client(error, error, error)

        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(WhatsAppError) as exc_info:
                await provider.send_message("919876543210", TextMessage("hi"))

        assert exc_info.value.details["network_error"] is True

    @pytest.mark.unit
    async def test_client_error_is_not_retried(self, credentials, no_sleep):
        provider = _make_provider()
        client = _mock_client(_response(400, '{"error":{"message":"Invalid parameter"}}'))

        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(WhatsAppError):
                await provider.send_message("919876543210", TextMessage("hi"))

        assert client.post.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.unit
    async def test_graph_error_code_unpacked(self, credentials, no_sleep):
        provider = _make_provider()
        body = '{"error":{"code":131026,"message":"Message undeliverable"}}'
        client = _mock_client(_response(400, body))

        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(WhatsAppError) as exc_info:
                await provider.send_message("919876543210", TextMessage("hi"))

        assert exc_info.value.details["graph_error_code"] == 131026
        assert exc_info.value.details["graph_error_message"] == "Message undeliverable"

    @pytest.mark.unit
    async def test_failures_open_circuit(self, credentials, no_sleep):
        provider = _make_provider(failure_threshold=1)
        client = _mock_client(_response(400), _response(200))

        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(WhatsAppError):
                await provider.send_message("919876543210", TextMessage("hi"))
            with pytest.raises(CircuitBreakerOpenError):
                await provider.send_message("919876543210", TextMessage("hi"))

        assert client.post.await_count == 1


class TestSimulationMode:

    @pytest.mark.unit
    async def test_without_token_nothing_is_sent(self):
        provider = _make_provider()

        with patch("httpx.AsyncClient") as client_cls:
            await provider.send_message("919876543210", TextMessage("hi"))

        assert provider.is_simulated
        client_cls.assert_not_called()


class TestProviderFactory:

    @pytest.mark.unit
    def test_singleton(self):
        first = get_whatsapp_provider()

        assert first is get_whatsapp_provider()
        assert first.provider_name == "cloud_api"

    @pytest.mark.unit
    def test_reset_providers(self):
        first = get_whatsapp_provider()
        reset_providers()

        assert get_whatsapp_provider() is not first

    @pytest.mark.unit
    def test_normalize_phone(self):
        assert get_whatsapp_provider().normalize_phone("09876543210") == "919876543210"
