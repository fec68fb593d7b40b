"""
Direct Substrate node balance provider over WebSocket JSON-RPC.

Reads ``System.Account`` storage for the account from a list of redundant
public RPC mirrors, either one after another or all at once.

Storage layout:
    key   = twox128("System") ++ twox128("Account") ++ blake2_128(id) ++ id
    value = SCALE AccountInfo: nonce, consumers, providers, sufficients (u32 each),
            then AccountData free, reserved, frozen, flags (u128 each, little-endian)
"""

from __future__ import annotations

import asyncio
import hashlib
import itertools
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import websockets

from ..services.address import ACCOUNT_ID_LENGTH, decode_account_id, shorten
from ..services.chains import endpoint_label
from ..types.balance import ProviderResult
from .base import (
    BalanceProvider,
    ProgressCallback,
    ProviderCancelled,
    ProviderConfigError,
    ProviderError,
    ProviderNoData,
    ProviderSpec,
    run_with_deadline,
)

logger = logging.getLogger(__name__)

# twox128("System") ++ twox128("Account")
SYSTEM_ACCOUNT_PREFIX = "26aa394eea5630e07c48ae0c9558cef7b99d880ec681799c0cf30e8886371da9"

_ACCOUNT_INFO_HEADER = 16  # four u32 counters
_U128 = 16

Connector = Callable[[str], Awaitable[Any]]


def account_storage_key(account_id: bytes) -> str:
    digest = hashlib.blake2b(account_id, digest_size=16).hexdigest()
    return f"0x{SYSTEM_ACCOUNT_PREFIX}{digest}{account_id.hex()}"


def decode_account_info(raw: Any) -> Tuple[int, int]:
    """Return ``(free, reserved)`` from a hex SCALE ``AccountInfo``."""

    if raw is None:
        # No storage entry: the account has never been funded
        return 0, 0
    if not isinstance(raw, str) or not raw.startswith("0x"):
        raise ProviderError("Unexpected storage value")
    try:
        data = bytes.fromhex(raw[2:])
    except ValueError as exc:
        raise ProviderError("Storage value is not valid hex") from exc

    free_end = _ACCOUNT_INFO_HEADER + _U128
    reserved_end = free_end + _U128
    if len(data) < reserved_end:
        raise ProviderError("Storage value too short for AccountInfo")

    free = int.from_bytes(data[_ACCOUNT_INFO_HEADER:free_end], "little")
    reserved = int.from_bytes(data[free_end:reserved_end], "little")
    return free, reserved


class EndpointQueryError(ProviderError):
    """The node answered the readiness probe but the balance query failed."""

    def __init__(self, message: str, *, connection_ms: int) -> None:
        super().__init__(message)
        self.connection_ms = connection_ms


@dataclass
class EndpointBalance:
    url: str
    label: str
    chain_name: Optional[str]
    free: int
    reserved: int
    connection_ms: int
    response_ms: int


class _JsonRpcSession:
    """Request/response matching on top of one WebSocket connection."""

    def __init__(self, socket: Any) -> None:
        self._socket = socket
        self._ids = itertools.count(1)

    async def call(self, method: str, params: List[Any]) -> Any:
        request_id = next(self._ids)
        await self._socket.send(json.dumps({
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        }))

        while True:
            frame = await self._socket.recv()
            try:
                message = json.loads(frame)
            except (TypeError, ValueError) as exc:
                raise ProviderError(f"Malformed JSON-RPC frame for {method}") from exc

            # Skip subscription notifications and stale replies
            if not isinstance(message, dict) or message.get("id") != request_id:
                continue
            if "error" in message:
                error = message["error"]
                detail = error.get("message") if isinstance(error, dict) else error
                raise ProviderError(f"RPC error from {method}: {detail}")
            if "result" not in message:
                raise ProviderError(f"Empty response from {method}")
            return message["result"]


class SubstrateRpcProvider(BalanceProvider):
    """Balance lookups straight from Substrate nodes with endpoint fallback."""

    # Each step carries its own deadline; no overall cap on the rotation
    timeout_s = None

    def __init__(
        self,
        spec: ProviderSpec,
        *,
        parallel: bool = False,
        connect_timeout_s: float = 8.0,
        ready_timeout_s: float = 5.0,
        query_timeout_s: float = 10.0,
        account_id_length: int = ACCOUNT_ID_LENGTH,
        connector: Optional[Connector] = None,
    ) -> None:
        super().__init__(spec)
        self.endpoint_urls: Tuple[str, ...] = tuple(spec.endpoint_urls)
        self.parallel = parallel
        self.connect_timeout_s = connect_timeout_s
        self.ready_timeout_s = ready_timeout_s
        self.query_timeout_s = query_timeout_s
        self.account_id_length = account_id_length
        self._connector = connector or self._open_socket

    async def ready(self) -> bool:
        return bool(self.endpoint_urls)

    async def health_check(self) -> Dict[str, Any]:
        if not self.endpoint_urls:
            return {"status": "unavailable", "reason": "No RPC endpoints configured"}
        return {
            "status": "configured",
            "mode": "parallel" if self.parallel else "sequential",
            "endpoints": [endpoint_label(url) for url in self.endpoint_urls],
        }

    async def _open_socket(self, url: str) -> Any:
        return await websockets.connect(url, open_timeout=self.connect_timeout_s, close_timeout=2)

    async def _close(self, socket: Any, url: str) -> None:
        try:
            await socket.close()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Ignoring close error on %s: %s", url, exc)

    async def query_endpoint(
        self,
        url: str,
        account_id: bytes,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> EndpointBalance:
        """Connect to one mirror, wait for it to answer, read the account, disconnect."""

        start = time.perf_counter()
        socket = await run_with_deadline(
            self._connector(url),
            timeout=self.connect_timeout_s,
            cancel=cancel,
            label="Connection",
        )
        try:
            session = _JsonRpcSession(socket)
            chain_name = await run_with_deadline(
                session.call("system_chain", []),
                timeout=self.ready_timeout_s,
                cancel=cancel,
                label="API ready",
            )
            connection_ms = int((time.perf_counter() - start) * 1000)

            try:
                raw = await run_with_deadline(
                    session.call("state_getStorage", [account_storage_key(account_id)]),
                    timeout=self.query_timeout_s,
                    cancel=cancel,
                    label="Query",
                )
                free, reserved = decode_account_info(raw)
            except ProviderCancelled:
                raise
            except Exception as exc:  # noqa: BLE001
                raise EndpointQueryError(_describe(exc), connection_ms=connection_ms) from exc
        finally:
            await self._close(socket, url)

        return EndpointBalance(
            url=url,
            label=endpoint_label(url),
            chain_name=chain_name if isinstance(chain_name, str) else None,
            free=free,
            reserved=reserved,
            connection_ms=connection_ms,
            response_ms=int((time.perf_counter() - start) * 1000),
        )

    async def _query(
        self,
        address: str,
        report: ProgressCallback,
        cancel: Optional[asyncio.Event],
    ) -> ProviderResult:
        if not self.endpoint_urls:
            raise ProviderConfigError("No RPC endpoints configured")
        try:
            account_id = decode_account_id(address, self.account_id_length)
        except ValueError as exc:
            raise ProviderNoData(f"Address is not a valid account id: {exc}") from exc

        report(f"Attempting to get {self.spec.token_symbol} balance for {shorten(address)}")
        if self.parallel:
            balance = await self._query_parallel(account_id, report, cancel)
        else:
            balance = await self._query_sequential(account_id, report, cancel)

        report(f"✓ Success via {balance.label} ({balance.response_ms}ms)")
        return self._build_result(balance.free, balance.reserved, endpoint=balance.label)

    async def _query_sequential(
        self,
        account_id: bytes,
        report: ProgressCallback,
        cancel: Optional[asyncio.Event],
    ) -> EndpointBalance:
        report(f"Trying {len(self.endpoint_urls)} RPC endpoints...")
        for url in self.endpoint_urls:
            label = endpoint_label(url)
            report(f"Trying {label}...")
            try:
                return await self.query_endpoint(url, account_id, cancel=cancel)
            except ProviderCancelled:
                raise
            except Exception as exc:  # noqa: BLE001
                report(f"✗ {label} failed: {_describe(exc)}")

        raise ProviderError(f"All {len(self.endpoint_urls)} RPC endpoints failed")

    async def _query_parallel(
        self,
        account_id: bytes,
        report: ProgressCallback,
        cancel: Optional[asyncio.Event],
    ) -> EndpointBalance:
        report(f"Trying {len(self.endpoint_urls)} RPC endpoints in parallel...")
        tasks: Dict[asyncio.Task, str] = {
            asyncio.create_task(self.query_endpoint(url, account_id, cancel=cancel)): url
            for url in self.endpoint_urls
        }
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    exc = task.exception()
                    if exc is None:
                        return task.result()
                    if isinstance(exc, ProviderCancelled):
                        raise exc
                    report(f"✗ {endpoint_label(tasks[task])} failed: {_describe(exc)}")
        finally:
            # Losers are cancelled so their sockets close before we return
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        raise ProviderError(f"All {len(self.endpoint_urls)} RPC endpoints failed")


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return message if message else type(exc).__name__
