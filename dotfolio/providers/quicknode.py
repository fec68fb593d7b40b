"""Alternate REST balance provider (QuickNode-style Polkadot REST endpoints)."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

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

# The hosted REST API is undocumented and has shipped under several paths
PATH_VARIANTS: Tuple[str, ...] = (
    "/accounts/{address}/balance-info",
    "/v1/accounts/{address}/balance",
    "/api/v1/accounts/{address}/balance",
    "/accounts/{address}/balance",
)


class QuickNodeProvider(BalanceProvider):
    """Query a REST balance API, tolerating several path and payload shapes."""

    timeout_s = 15

    def __init__(
        self,
        spec: ProviderSpec,
        *,
        api_key: str = "",
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        super().__init__(spec)
        self.api_key = api_key
        self.base_url = spec.endpoint_urls[0].rstrip("/") if spec.endpoint_urls else ""
        self.rate_limiter = rate_limiter
        self._transport = transport
        if timeout_s is not None:
            self.timeout_s = timeout_s

    async def ready(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            # Deployments differ on which header they read
            headers["X-API-Key"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def candidate_urls(self, address: str) -> List[str]:
        return [f"{self.base_url}{path.format(address=address)}" for path in PATH_VARIANTS]

    async def _query(
        self,
        address: str,
        report: ProgressCallback,
        cancel: Optional[asyncio.Event],
    ) -> ProviderResult:
        if not self.base_url:
            raise ProviderConfigError("Alternate REST URL not configured (set ALTERNATE_REST_BASE_URL)")

        report(f"Attempting alternate REST API for {shorten(address)}")
        urls = self.candidate_urls(address)
        report(f"Trying {len(urls)} endpoint formats...")

        payload = await self._first_success(urls, report)

        free_raw, reserved_raw = self._extract_balance(payload)
        try:
            free = to_planck(free_raw)
            reserved = to_planck(reserved_raw)
        except ValueError as exc:
            raise ProviderNoData(f"Unreadable balance fields: {exc}") from exc
        return self._build_result(free, reserved)

    async def _get(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        # Every path variant is its own request and takes its own limiter slot
        if self.rate_limiter is None:
            return await client.get(url, headers=self._headers())
        return await self.rate_limiter.execute(lambda: client.get(url, headers=self._headers()))

    async def _first_success(self, urls: List[str], report: ProgressCallback) -> Any:
        last_error = ""
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            for url in urls:
                report(f"Trying endpoint: {url}")
                try:
                    response = await self._get(client, url)
                except httpx.RequestError as exc:
                    last_error = str(exc) or type(exc).__name__
                    report(f"✗ Error with {url}: {last_error}")
                    continue

                if not response.is_success:
                    last_error = f"{response.status_code} {response.reason_phrase}: {response.text[:100]}".rstrip(": ")
                    report(f"✗ Failed: {last_error}")
                    continue

                try:
                    payload = response.json()
                except ValueError:
                    last_error = f"{url} returned a body that is not JSON"
                    report(f"✗ {last_error}")
                    continue

                report(f"✓ Success with endpoint: {url}")
                return payload

        raise ProviderError(f"All alternate REST endpoints failed. Last error: {last_error or 'unknown'}")

    @staticmethod
    def _extract_balance(payload: Any) -> Tuple[Any, Any]:
        if not isinstance(payload, dict):
            raise ProviderNoData("Unexpected response format")

        balance: Optional[Dict[str, Any]] = None
        for candidate in (
            payload.get("balance"),
            (payload.get("data") or {}).get("balance") if isinstance(payload.get("data"), dict) else None,
            (payload.get("result") or {}).get("balance") if isinstance(payload.get("result"), dict) else None,
        ):
            if isinstance(candidate, dict) and "free" in candidate:
                balance = candidate
                break

        if balance is None and "free" in payload:
            balance = payload

        if balance is None:
            raise ProviderNoData("Unexpected response format")

        return balance.get("free"), balance.get("reserved") or "0"
