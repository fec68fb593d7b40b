from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query

from ..providers.base import ProviderConfigError
from ..services.address import is_valid_address
from ..services.balance_resolver import get_resolver
from ..services.endpoint_health import EndpointReport, get_endpoint_health_checker
from ..services.portfolio import PortfolioResult, get_portfolio_service
from ..types.balance import BalanceResolution

router = APIRouter()


def _resolver_for(chain: Optional[str]):
    try:
        return get_resolver(chain)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


def _require_address(address: str) -> str:
    if not is_valid_address(address):
        raise HTTPException(status_code=400, detail="Address is required")
    return address.strip()


@router.get("/balances/{address}", response_model=BalanceResolution)
async def get_balance(
    address: str,
    chain: Optional[str] = Query(default=None, description="Chain name, defaults to the configured chain"),
) -> BalanceResolution:
    """Resolve a balance through the provider fallback chain"""
    address = _require_address(address)
    resolver = _resolver_for(chain)
    return await resolver.resolve_detailed(address)


@router.get("/balances/{address}/compare")
async def compare_balances(
    address: str,
    chain: Optional[str] = Query(default=None, description="Chain name, defaults to the configured chain"),
) -> Dict[str, Any]:
    """Query every provider at once and report each attempt"""
    address = _require_address(address)
    resolver = _resolver_for(chain)
    attempts = await resolver.compare_all_detailed(address)
    return {
        "address": address,
        "chain": resolver.chain,
        "attempts": [attempt.model_dump(mode="json") for attempt in attempts],
        "successful": sum(1 for attempt in attempts if attempt.succeeded),
    }


@router.get("/portfolio/{address}", response_model=PortfolioResult)
async def get_portfolio(address: str) -> PortfolioResult:
    address = _require_address(address)
    try:
        return await get_portfolio_service().get_portfolio(address)
    except ProviderConfigError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/endpoints/health", response_model=List[EndpointReport])
async def endpoint_health(
    address: str = Query(..., description="Account used for the balance query"),
    chain: Optional[str] = Query(default=None, description="Limit the check to one chain"),
) -> List[EndpointReport]:
    """Test every public RPC mirror one after another"""
    checker = get_endpoint_health_checker()
    try:
        return await checker.check_all(address, chains=[chain] if chain else None)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
