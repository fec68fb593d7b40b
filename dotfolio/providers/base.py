from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

import httpx

from ..types.balance import AttemptStatus, ProviderAttempt, ProviderResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[str], None]


class ProviderError(Exception):
    """Transport-level failure: refused connection, bad status, malformed body."""


class ProviderConfigError(ProviderError):
    """Credential or URL missing; detected before any network call."""


class ProviderNoData(ProviderError):
    """Valid response that carries no balance for the account."""


class ProviderTimeout(ProviderError):
    """A local deadline expired before the operation settled."""


class ProviderCancelled(ProviderError):
    """The caller's cancellation signal fired."""


@dataclass(frozen=True)
class ProviderSpec:
    """Static provider configuration, built once at start-up."""
    name: str
    endpoint_urls: Tuple[str, ...]
    decimal_places: int
    token_symbol: str
    chain: Optional[str] = None


async def run_with_deadline(
    awaitable: Awaitable[T],
    *,
    timeout: Optional[float],
    cancel: Optional[asyncio.Event] = None,
    label: str = "operation",
) -> T:
    """Race ``awaitable`` against a timer and an optional cancellation event.

    Whichever settles first wins; the losers are cancelled and awaited so a
    pending connect or query releases its socket before we return.
    """

    task = asyncio.ensure_future(awaitable)
    waiters = {task}
    cancel_waiter: Optional[asyncio.Task] = None
    if cancel is not None:
        if cancel.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise ProviderCancelled(f"{label} cancelled")
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [waiter for waiter in waiters if not waiter.done()]
        for waiter in pending:
            waiter.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if task in done:
        return task.result()
    if cancel_waiter is not None and cancel_waiter in done:
        raise ProviderCancelled(f"{label} cancelled")
    raise ProviderTimeout(f"{label} timeout")


class BalanceProvider(ABC):
    """Base adapter turning one third-party transport into ``ProviderResult``.

    Subclasses implement ``_query`` and raise the ``Provider*`` exceptions;
    ``attempt`` converts every outcome into a ``ProviderAttempt`` and never
    raises.
    """

    # Overall deadline for one ``_query``; None leaves timing to the adapter.
    timeout_s: Optional[float] = 15

    def __init__(self, spec: ProviderSpec) -> None:
        self.spec = spec
        self.name = spec.name

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is configured to serve requests"""
        pass

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Provider not configured"}
        return {"status": "configured", "endpoints": len(self.spec.endpoint_urls)}

    @abstractmethod
    async def _query(
        self,
        address: str,
        report: ProgressCallback,
        cancel: Optional[asyncio.Event],
    ) -> ProviderResult:
        """Fetch one balance or raise a ``ProviderError`` subclass."""
        pass

    def _build_result(self, free: int, reserved: int, *, endpoint: Optional[str] = None) -> ProviderResult:
        return ProviderResult.from_planck(
            free=free,
            reserved=reserved,
            decimals=self.spec.decimal_places,
            token=self.spec.token_symbol,
            provider=self.name,
            chain=self.spec.chain,
            endpoint=endpoint,
        )

    def _reporter(self, on_progress: Optional[ProgressCallback]) -> ProgressCallback:
        def report(message: str) -> None:
            logger.info("[%s] %s", self.name, message)
            if on_progress is None:
                return
            try:
                on_progress(message)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Progress callback failed: %s", exc)

        return report

    async def attempt(
        self,
        address: str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> ProviderAttempt:
        report = self._reporter(on_progress)
        start = time.perf_counter()
        status = AttemptStatus.TRANSPORT_ERROR
        result: Optional[ProviderResult] = None
        error: Optional[str] = None

        try:
            result = await run_with_deadline(
                self._query(address, report, cancel),
                timeout=self.timeout_s,
                cancel=cancel,
                label=f"{self.name} request",
            )
            status = AttemptStatus.SUCCESS
        except ProviderConfigError as exc:
            status, error = AttemptStatus.CONFIG_ERROR, str(exc)
        except ProviderNoData as exc:
            status, error = AttemptStatus.NO_DATA, str(exc)
        except ProviderCancelled as exc:
            status, error = AttemptStatus.CANCELLED, str(exc)
        except ProviderError as exc:
            error = str(exc)
        except httpx.HTTPError as exc:
            error = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected %s failure", self.name)
            error = f"{type(exc).__name__}: {exc}"

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        if result is not None:
            result = result.model_copy(update={"response_time_ms": elapsed_ms})

        if status == AttemptStatus.SUCCESS:
            report(f"✓ {self.name} success ({elapsed_ms}ms)")
        elif status == AttemptStatus.NO_DATA:
            report(f"○ {self.name} returned no balance: {error} ({elapsed_ms}ms)")
        else:
            report(f"✗ {self.name} error: {error or 'Unknown error'} ({elapsed_ms}ms)")

        return ProviderAttempt(
            provider=self.name,
            status=status,
            response_time_ms=elapsed_ms,
            error=error,
            result=result,
        )

    async def fetch_balance(
        self,
        address: str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Optional[ProviderResult]:
        attempt = await self.attempt(address, on_progress=on_progress, cancel=cancel)
        return attempt.result if attempt.succeeded else None
