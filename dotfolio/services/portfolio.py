"""
Multi-chain portfolio scan over the indexer.

Queries the indexer once per essential chain, one chain after another,
through a single shared rate limiter. Chains that fail or hold nothing are
skipped without aborting the scan.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

import httpx
from pydantic import BaseModel, Field

from ..config import settings
from ..providers.base import ProgressCallback, ProviderConfigError, ProviderSpec
from ..providers.subscan import SubscanProvider
from ..types.balance import AttemptStatus, ProviderResult
from .address import shorten
from .balance_resolver import INDEXER_LABEL, get_indexer_rate_limiter
from .chains import ChainInfo, essential_chains, get_chain
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10


class PortfolioResult(BaseModel):
    address: str = Field(description="Scanned account")
    balances: List[ProviderResult] = Field(default_factory=list, description="Balances found, one per chain")
    chains_queried: List[str] = Field(default_factory=list, description="Chains the indexer was asked about")
    chains_without_balance: List[str] = Field(
        default_factory=list,
        description="Chains that returned no balance or failed",
    )
    cancelled: bool = Field(default=False, description="Scan stopped early by the caller")


class IndexerPortfolioService:
    """
    Scan the indexer for balances across many chains.

    Usage:
        service = get_portfolio_service()
        portfolio = await service.get_portfolio("1...")
        portfolio = await service.get_portfolio("1...", chains=["Polkadot", "Kusama"])
    """

    def __init__(
        self,
        *,
        api_key: str,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_s: float = 15.0,
    ) -> None:
        self.api_key = api_key
        self.rate_limiter = rate_limiter or RateLimiter(requests_per_second=5)
        self._transport = transport
        self.timeout_s = timeout_s

    def _provider(self, chain: ChainInfo) -> SubscanProvider:
        return SubscanProvider(
            ProviderSpec(
                name=INDEXER_LABEL,
                endpoint_urls=(chain.indexer_url,) if chain.indexer_url else (),
                decimal_places=chain.decimals,
                token_symbol=chain.token,
                chain=chain.name,
            ),
            api_key=self.api_key,
            rate_limiter=self.rate_limiter,
            transport=self._transport,
            timeout_s=self.timeout_s,
        )

    @staticmethod
    def _resolve_chains(chains: Optional[Sequence[str]]) -> List[ChainInfo]:
        if chains is None:
            return essential_chains()
        resolved = []
        for name in chains:
            info = get_chain(name)
            if info is None:
                raise ValueError(f"Unknown chain: {name}")
            resolved.append(info)
        return resolved

    async def get_portfolio(
        self,
        address: str,
        chains: Optional[Sequence[str]] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> PortfolioResult:
        """
        Get balances for ``address`` on every requested chain.

        Args:
            address: SS58 or hex account
            chains: Chain names (defaults to the essential chain set)
            on_progress: Receives a line every ten chains
            cancel: Stops the scan before the next chain when set

        Raises:
            ValueError: empty address or unknown chain name
            ProviderConfigError: indexer API key not configured
        """

        address = (address or "").strip()
        if not address:
            raise ValueError("Address is required")
        if not self.api_key:
            raise ProviderConfigError("Indexer API key not configured (set INDEXER_API_KEY)")

        targets = self._resolve_chains(chains)
        result = PortfolioResult(address=address)

        def emit(message: str) -> None:
            logger.info("[Portfolio] %s", message)
            if on_progress is not None:
                on_progress(message)

        emit(f"Querying {len(targets)} chains for {shorten(address)}")
        for completed, chain in enumerate(targets, start=1):
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                emit("Portfolio scan cancelled")
                break

            attempt = await self._provider(chain).attempt(address, cancel=cancel)
            result.chains_queried.append(chain.name)
            if attempt.succeeded:
                result.balances.append(attempt.result)
            else:
                result.chains_without_balance.append(chain.name)
                if attempt.status == AttemptStatus.TRANSPORT_ERROR:
                    logger.debug("Indexer failed for %s: %s", chain.name, attempt.error)

            if completed % PROGRESS_EVERY == 0:
                emit(f"Progress: {completed}/{len(targets)} chains queried...")

        emit(f"Found {len(result.balances)} balances across {len(result.chains_queried)} chains")
        return result


# Singleton instance
_portfolio_service: Optional[IndexerPortfolioService] = None


def get_portfolio_service() -> IndexerPortfolioService:
    """Get the singleton portfolio service instance."""
    global _portfolio_service
    if _portfolio_service is None:
        _portfolio_service = IndexerPortfolioService(
            api_key=settings.indexer_api_key,
            rate_limiter=get_indexer_rate_limiter(),
            timeout_s=settings.indexer_timeout_seconds,
        )
    return _portfolio_service
