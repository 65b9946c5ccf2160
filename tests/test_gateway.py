"""
Tests for the credential-hiding Gateway.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from config import Credential
from core.errors import (
    BackendUnavailable,
    ConfigurationError,
    GenericBackendError,
    RateLimited,
    ResponseUnparseable,
)
from core.gateway import Gateway


@pytest.fixture
def mock_httpx_client() -> AsyncMock:
    """Create mock httpx client."""
    return AsyncMock(spec=httpx.AsyncClient)


@pytest.fixture
def gateway(config, mock_httpx_client) -> Gateway:
    return Gateway(config, client=mock_httpx_client)


class TestGatewaySend:
    """Test successful sends and reply normalization."""

    @pytest.mark.asyncio
    async def test_send_attaches_secret(self, gateway, mock_httpx_client):
        """Test the secret is attached and the blocking payload is posted to the endpoint."""
        mock_httpx_client.post.return_value = httpx.Response(200, json={"answer": "42"})

        reply = await gateway.send("KEY_A", "What is the answer?")

        assert reply.answer == "42"
        assert reply.strategy == "answer"

        args, kwargs = mock_httpx_client.post.call_args
        assert args[0] == "https://backend.test/a"
        assert kwargs["headers"]["Authorization"] == "Bearer secret-a"
        assert kwargs["json"] == {
            "inputs": {},
            "query": "What is the answer?",
            "user": "default-user",
            "response_mode": "blocking",
            "conversation_id": None,
        }

    @pytest.mark.asyncio
    async def test_send_keeps_reply_metadata(self, gateway, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(
            200, json={"answer": "ok", "conversation_id": "c1", "message_id": "m1"}
        )

        reply = await gateway.send("KEY_A", "q")

        assert reply.conversation_id == "c1"
        assert reply.message_id == "m1"

    @pytest.mark.asyncio
    async def test_primary_field_preferred(self, gateway, mock_httpx_client):
        """Test answer beats text when both are present."""
        mock_httpx_client.post.return_value = httpx.Response(200, json={"text": "second", "answer": "first"})

        reply = await gateway.send("KEY_A", "q")

        assert reply.answer == "first"

    @pytest.mark.asyncio
    async def test_unknown_shape(self, gateway, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(200, json={"foo": "bar"})

        with pytest.raises(ResponseUnparseable):
            await gateway.send("KEY_A", "q")

    @pytest.mark.asyncio
    async def test_non_json_body(self, gateway, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(ResponseUnparseable):
            await gateway.send("KEY_A", "q")


class TestGatewayErrors:
    """Test classification of failures."""

    @pytest.mark.asyncio
    async def test_missing_credential(self, gateway, mock_httpx_client):
        """Test an unconfigured reference fails before any request is made."""
        with pytest.raises(ConfigurationError):
            await gateway.send("KEY_C", "q")

        mock_httpx_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_ascii_secret(self, config, gateway, mock_httpx_client):
        """Test a secret that cannot be sent as a header is a configuration error."""
        config.credentials["KEY_A"] = Credential(secret="app-kéy", endpoint="https://backend.test/a")

        with pytest.raises(ConfigurationError) as exc_info:
            await gateway.send("KEY_A", "q")

        assert "app-kéy" not in str(exc_info.value)
        mock_httpx_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_endpoint(self, gateway, mock_httpx_client):
        mock_httpx_client.post.side_effect = httpx.InvalidURL("Invalid URL component")

        with pytest.raises(ConfigurationError):
            await gateway.send("KEY_A", "q")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["inf", "nan", "-5", "Wed, 21 Oct 2026 07:28:00 GMT"])
    async def test_unusable_retry_after_ignored(self, gateway, mock_httpx_client, header):
        mock_httpx_client.post.return_value = httpx.Response(429, headers={"Retry-After": header})

        with pytest.raises(RateLimited) as exc_info:
            await gateway.send("KEY_A", "q")

        assert exc_info.value.retry_after is None

        mock_httpx_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_429_is_rate_limited(self, gateway, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(
            429, json={"message": "slow down"}, headers={"Retry-After": "15"}
        )

        with pytest.raises(RateLimited) as exc_info:
            await gateway.send("KEY_A", "q")

        assert exc_info.value.retry_after == 15.0
        # retry policy belongs to the dispatcher
        assert mock_httpx_client.post.call_count == 1

    @pytest.mark.asyncio
    async def test_quota_code_is_rate_limited(self, gateway, mock_httpx_client):
        """Test a quota error code in a 400 body counts as a rate limit."""
        mock_httpx_client.post.return_value = httpx.Response(
            400, json={"code": "provider_quota_exceeded", "message": "quota"}
        )

        with pytest.raises(RateLimited) as exc_info:
            await gateway.send("KEY_A", "q")

        assert exc_info.value.retry_after is None

    @pytest.mark.asyncio
    async def test_server_error_is_generic(self, gateway, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(
            500, json={"code": "internal_error", "message": "model crashed"}
        )

        with pytest.raises(GenericBackendError) as exc_info:
            await gateway.send("KEY_A", "q")

        assert exc_info.value.status_code == 500
        assert "model crashed" in str(exc_info.value)
        assert not isinstance(exc_info.value, RateLimited)

    @pytest.mark.asyncio
    async def test_plain_text_error(self, gateway, mock_httpx_client):
        mock_httpx_client.post.return_value = httpx.Response(502, text="Bad Gateway")

        with pytest.raises(GenericBackendError) as exc_info:
            await gateway.send("KEY_A", "q")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_connection_error(self, gateway, mock_httpx_client):
        """Test transport failures become BackendUnavailable."""
        mock_httpx_client.post.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(BackendUnavailable) as exc_info:
            await gateway.send("KEY_A", "q")

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value, GenericBackendError)

    @pytest.mark.asyncio
    async def test_timeout(self, gateway, mock_httpx_client):
        mock_httpx_client.post.side_effect = httpx.TimeoutException("timeout")

        with pytest.raises(BackendUnavailable):
            await gateway.send("KEY_A", "q")

    @pytest.mark.asyncio
    async def test_secret_not_in_errors(self, gateway, mock_httpx_client):
        mock_httpx_client.post.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(BackendUnavailable) as exc_info:
            await gateway.send("KEY_A", "q")

        assert "secret-a" not in str(exc_info.value)
        assert "KEY_A" not in str(exc_info.value)


class TestGatewayLifecycle:

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, gateway, mock_httpx_client):
        await gateway.aclose()

        mock_httpx_client.aclose.assert_not_called()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self, config):
        gateway = Gateway(config)
        await gateway.aclose()

        assert gateway.client.is_closed
