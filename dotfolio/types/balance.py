from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ..services.amounts import format_planck


class ProviderResult(BaseModel):
    free: str = Field(description="Transferable balance, decimal string")
    reserved: str = Field(description="Reserved balance, decimal string")
    total: str = Field(description="free + reserved, decimal string")
    token: str = Field(description="Token symbol (e.g. DOT)")
    provider: str = Field(description="Label of the provider that answered")
    response_time_ms: int = Field(default=0, description="Wall-clock time of this provider attempt")
    success: bool = Field(default=True, description="Whether the provider produced a balance")
    error: Optional[str] = Field(default=None, description="Failure reason when success is false")
    chain: Optional[str] = Field(default=None, description="Chain the balance belongs to")
    endpoint: Optional[str] = Field(default=None, description="RPC mirror that served the balance")

    @classmethod
    def from_planck(
        cls,
        *,
        free: int,
        reserved: int,
        decimals: int,
        token: str,
        provider: str,
        chain: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> "ProviderResult":
        """Build a result from smallest-unit integers; total is summed before formatting."""
        total = free + reserved
        return cls(
            free=format_planck(free, decimals),
            reserved=format_planck(reserved, decimals),
            total=format_planck(total, decimals),
            token=token,
            provider=provider,
            chain=chain,
            endpoint=endpoint,
        )


class AttemptStatus(str, Enum):
    SUCCESS = "success"
    NO_DATA = "no_data"
    CONFIG_ERROR = "config_error"
    TRANSPORT_ERROR = "transport_error"
    CANCELLED = "cancelled"


class ResolutionOutcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ALL_PROVIDERS_FAILED = "all_providers_failed"
    INVALID_ADDRESS = "invalid_address"
    CANCELLED = "cancelled"


class ProviderAttempt(BaseModel):
    provider: str = Field(description="Provider label")
    status: AttemptStatus = Field(description="How the attempt ended")
    response_time_ms: int = Field(default=0, description="Wall-clock time of the attempt")
    error: Optional[str] = Field(default=None, description="Error message, never a stack trace")
    result: Optional[ProviderResult] = Field(default=None, description="Balance when status is success")

    @property
    def succeeded(self) -> bool:
        return self.status == AttemptStatus.SUCCESS and self.result is not None

    def describe(self) -> str:
        if self.succeeded:
            return f"✓ {self.provider}: {self.result.total} {self.result.token} ({self.response_time_ms}ms)"
        if self.status == AttemptStatus.NO_DATA:
            return f"○ {self.provider}: no data ({self.error or 'empty response'}) ({self.response_time_ms}ms)"
        return f"✗ {self.provider}: {self.error or self.status.value} ({self.response_time_ms}ms)"


class BalanceResolution(BaseModel):
    address: str = Field(description="Queried account")
    chain: str = Field(description="Chain the providers were configured for")
    outcome: ResolutionOutcome = Field(description="Tagged outcome of the resolution")
    result: Optional[ProviderResult] = Field(default=None, description="Winning balance, if any")
    attempts: List[ProviderAttempt] = Field(default_factory=list, description="Every provider attempt, in order")

    def progress_lines(self) -> List[str]:
        """Human-readable projection of the attempt history."""
        lines = [attempt.describe() for attempt in self.attempts]
        if self.outcome == ResolutionOutcome.FOUND and self.result is not None:
            lines.append(f"Resolved via {self.result.provider}")
        elif self.outcome == ResolutionOutcome.NOT_FOUND:
            lines.append("No provider knows a balance for this account")
        elif self.outcome == ResolutionOutcome.ALL_PROVIDERS_FAILED:
            lines.append("All providers failed to fetch balance")
        elif self.outcome == ResolutionOutcome.INVALID_ADDRESS:
            lines.append("Address is empty")
        else:
            lines.append("Resolution cancelled")
        return lines
