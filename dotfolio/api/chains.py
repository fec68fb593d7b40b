from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query

from ..services.chains import CHAINS, ChainInfo, mainnet_chains, search_chains

router = APIRouter()


def _serialize(chain: ChainInfo) -> Dict[str, Any]:
    return {
        "name": chain.name,
        "token": chain.token,
        "decimals": chain.decimals,
        "indexer_url": chain.indexer_url,
        "testnet": chain.testnet,
        "account_id_length": chain.account_id_length,
        "rpc_endpoints": [
            {"name": endpoint.name, "url": endpoint.url, "operator": endpoint.operator}
            for endpoint in chain.rpc_endpoints
        ],
    }


@router.get("/chains")
async def list_chains(
    q: Optional[str] = Query(default=None, description="Filter by chain name or token symbol"),
    include_testnets: bool = Query(default=False, description="Also list test networks"),
) -> List[Dict[str, Any]]:
    """Chains known to the resolver"""
    if q and q.strip():
        chains = search_chains(q)
        if not include_testnets:
            chains = [chain for chain in chains if not chain.testnet]
    elif include_testnets:
        chains = list(CHAINS)
    else:
        chains = mainnet_chains()
    return [_serialize(chain) for chain in chains]
