from .balance import (
    AttemptStatus,
    BalanceResolution,
    ProviderAttempt,
    ProviderResult,
    ResolutionOutcome,
)

__all__ = [
    "AttemptStatus",
    "BalanceResolution",
    "ProviderAttempt",
    "ProviderResult",
    "ResolutionOutcome",
]
