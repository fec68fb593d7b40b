"""Side-by-side health check of every public RPC mirror."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..config import settings
from ..providers.base import ProgressCallback, ProviderSpec
from ..providers.substrate_rpc import Connector, EndpointQueryError, SubstrateRpcProvider
from .address import decode_account_id
from .amounts import format_planck
from .chains import ChainInfo, RpcEndpoint, chains_with_endpoints, get_chain

logger = logging.getLogger(__name__)

ERROR_PREVIEW_CHARS = 50


class EndpointReport(BaseModel):
    chain: str
    endpoint: str = Field(description="Mirror name")
    operator: str
    url: str
    status: str = Field(description="success, query_failed or failed")
    connection_time_ms: Optional[int] = None
    balance: Optional[str] = Field(default=None, description="free + reserved, decimal string")
    token: str
    error: Optional[str] = None


def _truncate(message: str) -> str:
    if len(message) > ERROR_PREVIEW_CHARS:
        return message[:ERROR_PREVIEW_CHARS] + "..."
    return message


class EndpointHealthChecker:
    """Test mirrors one at a time, pausing between them."""

    def __init__(
        self,
        *,
        connect_timeout_s: float = 8.0,
        ready_timeout_s: float = 5.0,
        query_timeout_s: float = 10.0,
        pause_s: float = 0.5,
        connector: Optional[Connector] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.connect_timeout_s = connect_timeout_s
        self.ready_timeout_s = ready_timeout_s
        self.query_timeout_s = query_timeout_s
        self.pause_s = pause_s
        self._connector = connector
        self._sleep = sleep

    def _provider(self, chain: ChainInfo) -> SubstrateRpcProvider:
        return SubstrateRpcProvider(
            ProviderSpec(
                name=f"{chain.name} RPC",
                endpoint_urls=tuple(endpoint.url for endpoint in chain.rpc_endpoints),
                decimal_places=chain.decimals,
                token_symbol=chain.token,
                chain=chain.name,
            ),
            connect_timeout_s=self.connect_timeout_s,
            ready_timeout_s=self.ready_timeout_s,
            query_timeout_s=self.query_timeout_s,
            account_id_length=chain.account_id_length,
            connector=self._connector,
        )

    async def check_endpoint(
        self,
        provider: SubstrateRpcProvider,
        chain: ChainInfo,
        endpoint: RpcEndpoint,
        account_id: bytes,
    ) -> EndpointReport:
        report = EndpointReport(
            chain=chain.name,
            endpoint=endpoint.name,
            operator=endpoint.operator,
            url=endpoint.url,
            status="failed",
            token=chain.token,
        )
        try:
            balance = await provider.query_endpoint(endpoint.url, account_id)
        except EndpointQueryError as exc:
            report.status = "query_failed"
            report.connection_time_ms = exc.connection_ms
            report.error = _truncate(f"Query failed: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Endpoint %s (%s) failed: %s", endpoint.label, chain.name, exc)
            report.error = _truncate(str(exc) or type(exc).__name__)
        else:
            report.status = "success"
            report.connection_time_ms = balance.connection_ms
            report.balance = format_planck(balance.free + balance.reserved, chain.decimals)
        return report

    async def check_all(
        self,
        address: str,
        chains: Optional[Sequence[str]] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[EndpointReport]:
        address = (address or "").strip()
        if not address:
            raise ValueError("Please enter a valid address")

        if chains is None:
            targets = chains_with_endpoints()
        else:
            targets = []
            for name in chains:
                info = get_chain(name)
                if info is None:
                    raise ValueError(f"Unknown chain: {name}")
                targets.append(info)

        # Account ids are chain specific: H160 chains skip SS58 input and vice versa
        account_ids: Dict[str, bytes] = {}
        last_error: Optional[ValueError] = None
        for chain in targets:
            try:
                account_ids[chain.name] = decode_account_id(address, chain.account_id_length)
            except ValueError as exc:
                logger.info("Skipping %s endpoints: %s", chain.name, exc)
                last_error = exc
        if targets and not account_ids:
            raise ValueError(f"Address is not a valid account id: {last_error}")
        targets = [chain for chain in targets if chain.name in account_ids]

        jobs = [(chain, endpoint) for chain in targets for endpoint in chain.rpc_endpoints]
        providers = {chain.name: self._provider(chain) for chain in targets}
        reports: List[EndpointReport] = []

        for index, (chain, endpoint) in enumerate(jobs, start=1):
            logger.info("[Endpoint Test] Testing %s - %s (%s)", chain.name, endpoint.name, endpoint.url)
            report = await self.check_endpoint(providers[chain.name], chain, endpoint, account_ids[chain.name])
            reports.append(report)
            if on_progress is not None:
                on_progress(f"[{index}/{len(jobs)}] {chain.name} - {endpoint.label}: {report.status}")

            if index < len(jobs) and self.pause_s > 0:
                await self._sleep(self.pause_s)

        return reports


def get_endpoint_health_checker() -> EndpointHealthChecker:
    return EndpointHealthChecker(
        connect_timeout_s=settings.rpc_connect_timeout_seconds,
        ready_timeout_s=settings.rpc_ready_timeout_seconds,
        query_timeout_s=settings.rpc_query_timeout_seconds,
        pause_s=settings.endpoint_health_pause_seconds,
    )
