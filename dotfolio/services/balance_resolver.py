"""
Multi-provider balance resolution.

Tries the configured providers in a fixed order (Indexer → Alternate REST →
Chain RPC) and returns the first balance any of them produces. Every attempt
is recorded so callers can show which sources were tried and why they
failed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

import httpx

from ..config import Settings, settings as default_settings
from ..providers.base import BalanceProvider, ProgressCallback, ProviderSpec
from ..providers.quicknode import QuickNodeProvider
from ..providers.subscan import SubscanProvider
from ..providers.substrate_rpc import Connector, SubstrateRpcProvider
from ..types.balance import (
    AttemptStatus,
    BalanceResolution,
    ProviderAttempt,
    ProviderResult,
    ResolutionOutcome,
)
from .address import is_valid_address, shorten
from .chains import ChainInfo, get_chain
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

INDEXER_LABEL = "Indexer"
ALTERNATE_REST_LABEL = "Alternate REST"
CHAIN_RPC_LABEL = "Chain RPC"


class MultiProviderResolver:
    """
    Ordered fallback over several balance providers.

    Usage:
        resolver = build_resolver(chain="Polkadot")

        # First balance any provider can produce
        result = await resolver.resolve("1...", on_progress=print)

        # Full attempt history with a tagged outcome
        resolution = await resolver.resolve_detailed("1...")

        # Every provider at once, for side-by-side comparison
        results = await resolver.compare_all("1...")
    """

    def __init__(self, providers: Sequence[BalanceProvider], chain: str = "Polkadot") -> None:
        self.providers: List[BalanceProvider] = list(providers)
        self.chain = chain

    def _emitter(self, on_progress: Optional[ProgressCallback]) -> ProgressCallback:
        def emit(message: str) -> None:
            logger.info("[MultiProvider] %s", message)
            if on_progress is None:
                return
            try:
                on_progress(message)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Progress callback failed: %s", exc)

        return emit

    def _resolution(
        self,
        address: str,
        outcome: ResolutionOutcome,
        attempts: List[ProviderAttempt],
        result: Optional[ProviderResult] = None,
    ) -> BalanceResolution:
        return BalanceResolution(
            address=address,
            chain=self.chain,
            outcome=outcome,
            result=result,
            attempts=attempts,
        )

    async def resolve_detailed(
        self,
        address: str,
        on_progress: Optional[ProgressCallback] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> BalanceResolution:
        """Try each provider in order and stop at the first success. Never raises."""

        emit = self._emitter(on_progress)
        attempts: List[ProviderAttempt] = []

        if not is_valid_address(address):
            emit("No address provided")
            return self._resolution((address or "").strip(), ResolutionOutcome.INVALID_ADDRESS, attempts)
        address = address.strip()

        emit(f"Fetching {self.chain} balance for {shorten(address)}")
        emit(f"Trying multiple providers: {' → '.join(p.name for p in self.providers)}")

        for index, provider in enumerate(self.providers, start=1):
            if cancel is not None and cancel.is_set():
                emit("Balance lookup cancelled")
                return self._resolution(address, ResolutionOutcome.CANCELLED, attempts)

            emit(f"--- Trying {provider.name} (Provider {index}) ---")
            attempt = await provider.attempt(address, on_progress=on_progress, cancel=cancel)
            attempts.append(attempt)

            if attempt.succeeded:
                emit(f"✓ Balance fetched via {provider.name} in {attempt.response_time_ms}ms")
                return self._resolution(address, ResolutionOutcome.FOUND, attempts, attempt.result)
            if attempt.status == AttemptStatus.CANCELLED:
                emit("Balance lookup cancelled")
                return self._resolution(address, ResolutionOutcome.CANCELLED, attempts)

        emit("✗ All providers failed to fetch balance")
        for attempt in attempts:
            emit(f"  {attempt.describe()}")

        if any(attempt.status == AttemptStatus.NO_DATA for attempt in attempts):
            outcome = ResolutionOutcome.NOT_FOUND
        else:
            outcome = ResolutionOutcome.ALL_PROVIDERS_FAILED
        return self._resolution(address, outcome, attempts)

    async def resolve(
        self,
        address: str,
        on_progress: Optional[ProgressCallback] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> Optional[ProviderResult]:
        resolution = await self.resolve_detailed(address, on_progress, cancel=cancel)
        return resolution.result

    async def compare_all_detailed(
        self,
        address: str,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[ProviderAttempt]:
        """Query every provider concurrently; attempts come back in provider order."""

        if not is_valid_address(address):
            return []
        address = address.strip()
        return list(await asyncio.gather(*(
            provider.attempt(address, cancel=cancel) for provider in self.providers
        )))

    async def compare_all(
        self,
        address: str,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[ProviderResult]:
        attempts = await self.compare_all_detailed(address, cancel=cancel)
        return [attempt.result for attempt in attempts if attempt.succeeded]


# Shared across resolvers and the portfolio scan so the indexer ceiling holds process-wide
_indexer_rate_limiter: Optional[RateLimiter] = None
_resolvers: Dict[str, MultiProviderResolver] = {}


def get_indexer_rate_limiter() -> RateLimiter:
    global _indexer_rate_limiter
    if _indexer_rate_limiter is None:
        _indexer_rate_limiter = RateLimiter(default_settings.indexer_requests_per_second)
    return _indexer_rate_limiter


def _rpc_urls(config: Settings, chain: ChainInfo, is_default_chain: bool) -> List[str]:
    registry = [endpoint.url for endpoint in chain.rpc_endpoints]
    if not is_default_chain:
        return registry

    configured = config.rpc_endpoint_urls
    if config.chain_rpc_endpoint_list.strip():
        return configured
    return configured + [url for url in registry if url not in configured]


def build_resolver(
    config: Optional[Settings] = None,
    chain: Optional[str] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    connector: Optional[Connector] = None,
    indexer_rate_limiter: Optional[RateLimiter] = None,
    parallel: Optional[bool] = None,
) -> MultiProviderResolver:
    """Assemble the Indexer → Alternate REST → Chain RPC fallback for one chain.

    Raises ``ValueError`` for a chain missing from the registry.
    """

    config = config or default_settings
    chain_name = chain or config.default_chain
    info = get_chain(chain_name)
    if info is None:
        raise ValueError(f"Unknown chain: {chain_name}")
    is_default_chain = info.name.lower() == config.default_chain.strip().lower()

    indexer_url = config.indexer_base_url if (config.indexer_base_url and is_default_chain) else info.indexer_url
    providers: List[BalanceProvider] = [
        SubscanProvider(
            ProviderSpec(
                name=INDEXER_LABEL,
                endpoint_urls=(indexer_url,) if indexer_url else (),
                decimal_places=info.decimals,
                token_symbol=info.token,
                chain=info.name,
            ),
            api_key=config.indexer_api_key,
            rate_limiter=indexer_rate_limiter or RateLimiter(config.indexer_requests_per_second),
            transport=transport,
            timeout_s=config.indexer_timeout_seconds,
        )
    ]

    # The hosted REST API only serves the default relay chain
    if is_default_chain:
        rest_limiter = None
        if config.alternate_rest_requests_per_second > 0:
            rest_limiter = RateLimiter(config.alternate_rest_requests_per_second)
        providers.append(
            QuickNodeProvider(
                ProviderSpec(
                    name=ALTERNATE_REST_LABEL,
                    endpoint_urls=(config.alternate_rest_base_url,) if config.alternate_rest_base_url else (),
                    decimal_places=info.decimals,
                    token_symbol=info.token,
                    chain=info.name,
                ),
                api_key=config.alternate_rest_api_key,
                rate_limiter=rest_limiter,
                transport=transport,
                timeout_s=config.alternate_rest_timeout_seconds,
            )
        )

    providers.append(
        SubstrateRpcProvider(
            ProviderSpec(
                name=CHAIN_RPC_LABEL,
                endpoint_urls=tuple(_rpc_urls(config, info, is_default_chain)),
                decimal_places=info.decimals,
                token_symbol=info.token,
                chain=info.name,
            ),
            parallel=config.chain_rpc_parallel if parallel is None else parallel,
            connect_timeout_s=config.rpc_connect_timeout_seconds,
            ready_timeout_s=config.rpc_ready_timeout_seconds,
            query_timeout_s=config.rpc_query_timeout_seconds,
            account_id_length=info.account_id_length,
            connector=connector,
        )
    )

    return MultiProviderResolver(providers, chain=info.name)


def get_resolver(chain: Optional[str] = None) -> MultiProviderResolver:
    """Cached resolver per chain, all sharing the process-wide indexer limiter."""

    chain_name = (chain or default_settings.default_chain).strip().lower()
    resolver = _resolvers.get(chain_name)
    if resolver is None:
        resolver = build_resolver(chain=chain, indexer_rate_limiter=get_indexer_rate_limiter())
        _resolvers[chain_name] = resolver
    return resolver
