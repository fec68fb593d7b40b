from fastapi import APIRouter
from typing import Dict, Any

from ..config import settings
from ..services.balance_resolver import get_indexer_rate_limiter, get_resolver

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that reports provider configuration"""

    credentials = {
        "indexer_api_key": settings.has_indexer_key,
        "alternate_rest": settings.has_alternate_rest,
    }
    limiter = get_indexer_rate_limiter()
    indexer_queue = {
        "queued": limiter.queue_length,
        "processing": limiter.processing,
    }

    try:
        resolver = get_resolver()
    except ValueError as exc:
        # DEFAULT_CHAIN names a chain missing from the registry
        return {
            "status": "degraded",
            "chain": settings.default_chain,
            "error": str(exc),
            "credentials": credentials,
            "indexer_queue": indexer_queue,
            "providers": {},
            "available_providers": 0,
            "total_providers": 0,
        }

    provider_status = {}
    for provider in resolver.providers:
        provider_status[provider.name] = await provider.health_check()

    available_providers = sum(
        1 for status in provider_status.values()
        if status["status"] == "configured"
    )

    return {
        "status": "healthy" if available_providers > 0 else "degraded",
        "chain": resolver.chain,
        "credentials": credentials,
        "indexer_queue": indexer_queue,
        "providers": provider_status,
        "available_providers": available_providers,
        "total_providers": len(provider_status)
    }
