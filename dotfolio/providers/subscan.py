"""Subscan-backed indexer balance provider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..services.address import shorten
from ..services.amounts import to_planck
from ..services.rate_limiter import RateLimiter
from ..types.balance import ProviderResult
from .base import (
    BalanceProvider,
    ProgressCallback,
    ProviderConfigError,
    ProviderError,
    ProviderNoData,
    ProviderSpec,
)

logger = logging.getLogger(__name__)

# Messages Subscan uses for accounts it has never indexed
NOT_FOUND_MESSAGES = {"Record Not Found", "Invalid address"}


class SubscanProvider(BalanceProvider):
    """Fetch account balances from the Subscan indexer.

    Every request goes through ``rate_limiter`` so concurrent lookups across
    chains stay under Subscan's published ceiling.
    """

    timeout_s = 15

    def __init__(
        self,
        spec: ProviderSpec,
        *,
        api_key: str,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        super().__init__(spec)
        self.api_key = api_key
        self.base_url = spec.endpoint_urls[0].rstrip("/") if spec.endpoint_urls else ""
        self.rate_limiter = rate_limiter or RateLimiter(requests_per_second=5)
        self._transport = transport
        if timeout_s is not None:
            self.timeout_s = timeout_s
        self._missing_key_reported = False

    async def ready(self) -> bool:
        return bool(self.api_key) and bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        if not self.base_url:
            return {"status": "unavailable", "reason": f"No indexer URL for {self.spec.chain}"}
        if not self.api_key:
            return {"status": "unavailable", "reason": "API key not configured"}
        return {
            "status": "configured",
            "base_url": self.base_url,
            "requests_per_second": self.rate_limiter.requests_per_second,
            "queued": self.rate_limiter.queue_length,
        }

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
        }

    async def _query(
        self,
        address: str,
        report: ProgressCallback,
        cancel: Optional[asyncio.Event],
    ) -> ProviderResult:
        if not self.base_url:
            raise ProviderConfigError(f"No indexer URL configured for chain {self.spec.chain}")
        if not self.api_key:
            if not self._missing_key_reported:
                logger.warning("Indexer API key not configured; set INDEXER_API_KEY to enable %s", self.name)
                self._missing_key_reported = True
            raise ProviderConfigError("Indexer API key not configured (set INDEXER_API_KEY)")

        report(f"Fetching balance for {shorten(address)} on {self.spec.chain}")
        payload = await self.rate_limiter.execute(lambda: self._post_account(address))
        return self._parse_account(payload, report)

    async def _post_account(self, address: str) -> Any:
        url = f"{self.base_url}/api/scan/account"
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.post(url, json={"key": address}, headers=self._headers())

        if response.status_code >= 400:
            raise ProviderError(
                f"Indexer request failed: {response.status_code} {response.text[:100]}".rstrip()
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError("Indexer returned a body that is not JSON") from exc

    def _parse_account(self, payload: Any, report: ProgressCallback) -> ProviderResult:
        if not isinstance(payload, dict) or "code" not in payload:
            raise ProviderNoData("Malformed indexer envelope")

        code = payload.get("code")
        message = str(payload.get("message") or "")
        if code != 0:
            if message in NOT_FOUND_MESSAGES:
                # New or inactive accounts are simply not indexed yet
                raise ProviderNoData(f"Account not found in indexer ({message})")
            raise ProviderError(f"Indexer API error: {message or code}")

        data = payload.get("data")
        account = data.get("account") if isinstance(data, dict) else None
        if not account:
            raise ProviderNoData("No account data in response")
        if isinstance(account, str):
            raise ProviderNoData("Account exists but has no balance data")

        balance = account.get("data") if isinstance(account, dict) else None
        if not isinstance(balance, dict):
            raise ProviderNoData("Account is missing its balance structure")

        try:
            free = to_planck(balance.get("free", 0))
            reserved = to_planck(balance.get("reserved", 0))
        except ValueError as exc:
            raise ProviderNoData(f"Unreadable balance fields: {exc}") from exc

        report(f"Raw balance - free: {free}, reserved: {reserved}, total: {free + reserved}")
        return self._build_result(free, reserved)
