"""
Tests for the indexer (Subscan) balance provider.
"""

import json

import httpx
import pytest

from dotfolio.providers.base import ProviderSpec
from dotfolio.providers.subscan import SubscanProvider
from dotfolio.services.rate_limiter import RateLimiter
from dotfolio.types.balance import AttemptStatus


SCENARIO_ADDRESS = "5F5522o328T8MNsjDBTWXjfJvtdQsnUne2wjGvwLC4dLdmBC"

SPEC = ProviderSpec(
    name="Indexer",
    endpoint_urls=("https://polkadot.api.subscan.io",),
    decimal_places=10,
    token_symbol="DOT",
    chain="Polkadot",
)


def account_payload(free="1000000000000", reserved="500000000000"):
    return {
        "code": 0,
        "message": "Success",
        "data": {"account": {"address": SCENARIO_ADDRESS, "data": {"free": free, "reserved": reserved}}},
    }


def make_provider(handler, *, api_key="test-key", spec=SPEC):
    return SubscanProvider(
        spec,
        api_key=api_key,
        rate_limiter=RateLimiter(requests_per_second=100),
        transport=httpx.MockTransport(handler),
    )


# =============================================================================
# Successful lookups
# =============================================================================

class TestSubscanSuccess:

    @pytest.mark.asyncio
    async def test_scenario_balance(self):
        """1e12 free + 5e11 reserved Planck at 10 decimals is 100 / 50 / 150 DOT."""
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["method"] = request.method
            captured["headers"] = request.headers
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=account_payload())

        provider = make_provider(handler)
        attempt = await provider.attempt(SCENARIO_ADDRESS)

        assert attempt.status == AttemptStatus.SUCCESS
        result = attempt.result
        assert result.free == "100"
        assert result.reserved == "50"
        assert result.total == "150"
        assert result.token == "DOT"
        assert result.provider == "Indexer"
        assert result.success is True
        assert result.chain == "Polkadot"

        assert captured["method"] == "POST"
        assert captured["url"] == "https://polkadot.api.subscan.io/api/scan/account"
        assert captured["headers"]["x-api-key"] == "test-key"
        assert captured["body"] == {"key": SCENARIO_ADDRESS}

    @pytest.mark.asyncio
    async def test_missing_reserved_defaults_to_zero(self):
        def handler(request):
            payload = account_payload()
            del payload["data"]["account"]["data"]["reserved"]
            return httpx.Response(200, json=payload)

        result = await make_provider(handler).fetch_balance(SCENARIO_ADDRESS)

        assert result.reserved == "0"
        assert result.total == "100"

    @pytest.mark.asyncio
    async def test_progress_lines_reach_callback(self):
        lines = []

        def handler(request):
            return httpx.Response(200, json=account_payload())

        await make_provider(handler).attempt(SCENARIO_ADDRESS, on_progress=lines.append)

        assert any("Raw balance" in line for line in lines)
        assert lines[-1].startswith("✓ Indexer success")


# =============================================================================
# No data vs transport errors
# =============================================================================

class TestSubscanFailures:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"code": 10004, "message": "Record Not Found"},
            {"code": 0, "message": "Success", "data": {}},
            {"code": 0, "message": "Success", "data": {"account": "5F55..."}},
            {"code": 0, "message": "Success", "data": {"account": {"address": "x"}}},
            {"message": "no code field"},
            {"code": 0, "data": {"account": {"data": {"free": 1.5, "reserved": "0"}}}},
        ],
    )
    async def test_no_data_shapes(self, payload):
        provider = make_provider(lambda request: httpx.Response(200, json=payload))

        attempt = await provider.attempt(SCENARIO_ADDRESS)

        assert attempt.status == AttemptStatus.NO_DATA
        assert attempt.result is None

    @pytest.mark.asyncio
    async def test_api_error_code_is_transport_error(self):
        provider = make_provider(
            lambda request: httpx.Response(200, json={"code": 20008, "message": "API rate limit exceeded"})
        )

        attempt = await provider.attempt(SCENARIO_ADDRESS)

        assert attempt.status == AttemptStatus.TRANSPORT_ERROR
        assert "API rate limit exceeded" in attempt.error

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        provider = make_provider(lambda request: httpx.Response(500, text="Internal Server Error"))

        attempt = await provider.attempt(SCENARIO_ADDRESS)

        assert attempt.status == AttemptStatus.TRANSPORT_ERROR
        assert "500" in attempt.error

    @pytest.mark.asyncio
    async def test_body_not_json(self):
        provider = make_provider(lambda request: httpx.Response(200, text="<html>oops</html>"))

        attempt = await provider.attempt(SCENARIO_ADDRESS)

        assert attempt.status == AttemptStatus.TRANSPORT_ERROR

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        attempt = await make_provider(handler).attempt(SCENARIO_ADDRESS)

        assert attempt.status == AttemptStatus.TRANSPORT_ERROR
        assert "Connection refused" in attempt.error


# =============================================================================
# Configuration
# =============================================================================

class TestSubscanConfiguration:

    @pytest.mark.asyncio
    async def test_missing_api_key_skips_network(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=account_payload())

        provider = make_provider(handler, api_key="")
        attempt = await provider.attempt(SCENARIO_ADDRESS)

        assert attempt.status == AttemptStatus.CONFIG_ERROR
        assert calls == []
        assert await provider.ready() is False

    @pytest.mark.asyncio
    async def test_missing_base_url(self):
        spec = ProviderSpec(name="Indexer", endpoint_urls=(), decimal_places=10, token_symbol="DOT", chain="Nowhere")
        provider = make_provider(lambda request: httpx.Response(200), spec=spec)

        attempt = await provider.attempt(SCENARIO_ADDRESS)

        assert attempt.status == AttemptStatus.CONFIG_ERROR
        assert (await provider.health_check())["status"] == "unavailable"

    @pytest.mark.asyncio
    async def test_health_check_reports_limiter(self):
        provider = make_provider(lambda request: httpx.Response(200))

        health = await provider.health_check()

        assert health["status"] == "configured"
        assert health["requests_per_second"] == 100
