"""
Static chain registry for Substrate networks.

Token symbols, decimal places, indexer (Subscan) base URLs and the public
WebSocket RPC mirrors used for direct balance queries. Loaded once at import
and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse


@dataclass(frozen=True)
class RpcEndpoint:
    """One WebSocket RPC mirror of a chain."""
    name: str
    url: str
    operator: str

    @property
    def label(self) -> str:
        return f"{self.name} ({self.operator})"


@dataclass(frozen=True)
class ChainInfo:
    """Chain metadata shared by every balance provider."""
    name: str
    token: str
    decimals: int
    indexer_url: Optional[str] = None
    rpc_endpoints: Tuple[RpcEndpoint, ...] = field(default_factory=tuple)
    testnet: bool = False
    # 20 for EVM-style parachains keyed by H160 accounts
    account_id_length: int = 32


def _subscan(slug: str) -> str:
    return f"https://{slug}.api.subscan.io"


def _endpoints(*entries: Tuple[str, str, str]) -> Tuple[RpcEndpoint, ...]:
    return tuple(RpcEndpoint(name=name, url=url, operator=operator) for name, url, operator in entries)


CHAINS: Tuple[ChainInfo, ...] = (
    # Relay chains
    ChainInfo(
        "Polkadot", "DOT", 10, _subscan("polkadot"),
        _endpoints(
            ("Polkadot Official", "wss://rpc.polkadot.io", "Polkadot"),
            ("Dwellir", "wss://polkadot-rpc.dwellir.com", "Dwellir"),
            ("OnFinality", "wss://polkadot.api.onfinality.io/public-ws", "OnFinality"),
            ("RadiumBlock", "wss://polkadot.public.curie.radiumblock.co/ws", "RadiumBlock"),
            ("Automata", "wss://1rpc.io/dot", "1RPC"),
            ("IBP", "wss://rpc.ibp.network/polkadot", "IBP"),
        ),
    ),
    ChainInfo(
        "Kusama", "KSM", 12, _subscan("kusama"),
        _endpoints(
            ("Kusama Official", "wss://kusama-rpc.polkadot.io", "Polkadot"),
            ("Dwellir", "wss://kusama-rpc.dwellir.com", "Dwellir"),
            ("OnFinality", "wss://kusama.api.onfinality.io/public-ws", "OnFinality"),
            ("RadiumBlock", "wss://kusama.public.curie.radiumblock.co/ws", "RadiumBlock"),
            ("Automata", "wss://1rpc.io/ksm", "1RPC"),
            ("IBP", "wss://rpc.ibp.network/kusama", "IBP"),
        ),
    ),
    ChainInfo(
        "Westend", "WND", 12, _subscan("westend"),
        _endpoints(
            ("Westend Official", "wss://westend-rpc.polkadot.io", "Polkadot"),
            ("Dwellir", "wss://westend-rpc.dwellir.com", "Dwellir"),
            ("OnFinality", "wss://westend.api.onfinality.io/public-ws", "OnFinality"),
            ("RadiumBlock", "wss://westend.public.curie.radiumblock.co/ws", "RadiumBlock"),
        ),
        testnet=True,
    ),
    ChainInfo("Paseo", "PAS", 10, _subscan("paseo"), testnet=True),
    # Polkadot system parachains
    ChainInfo("AssetHub Polkadot", "DOT", 10, _subscan("assethub-polkadot")),
    ChainInfo("BridgeHub Polkadot", "DOT", 10, _subscan("bridgehub-polkadot")),
    ChainInfo("Coretime Polkadot", "DOT", 10, _subscan("coretime-polkadot")),
    ChainInfo("Collectives Polkadot", "DOT", 10, _subscan("collectives-polkadot")),
    ChainInfo("People Polkadot", "DOT", 10, _subscan("people-polkadot")),
    # Polkadot parachains
    ChainInfo(
        "Acala", "ACA", 12, _subscan("acala"),
        _endpoints(
            ("Acala Official", "wss://acala-rpc.dwellir.com", "Dwellir"),
            ("OnFinality", "wss://acala-polkadot.api.onfinality.io/public-ws", "OnFinality"),
            ("Blast", "wss://acala-polkadot.public.blastapi.io", "Blast"),
            ("IBP", "wss://rpc.ibp.network/acala", "IBP"),
        ),
    ),
    ChainInfo(
        "Astar", "ASTR", 18, _subscan("astar"),
        _endpoints(
            ("Astar Official", "wss://astar-rpc.dwellir.com", "Dwellir"),
            ("OnFinality", "wss://astar.api.onfinality.io/public-ws", "OnFinality"),
            ("Blast", "wss://astar.public.blastapi.io", "Blast"),
            ("IBP", "wss://rpc.ibp.network/astar", "IBP"),
        ),
    ),
    ChainInfo(
        "Moonbeam", "GLMR", 18, _subscan("moonbeam"),
        _endpoints(
            ("Moonbeam Official", "wss://wss.api.moonbeam.network", "Moonbeam"),
            ("OnFinality", "wss://moonbeam.api.onfinality.io/public-ws", "OnFinality"),
            ("Blast", "wss://moonbeam.public.blastapi.io", "Blast"),
            ("Automata", "wss://1rpc.io/glmr", "1RPC"),
            ("IBP", "wss://rpc.ibp.network/moonbeam", "IBP"),
        ),
        account_id_length=20,
    ),
    ChainInfo(
        "Centrifuge", "CFG", 18, _subscan("centrifuge"),
        _endpoints(
            ("Centrifuge Official", "wss://fullnode.centrifuge.io", "Centrifuge"),
            ("Dwellir", "wss://centrifuge-rpc.dwellir.com", "Dwellir"),
        ),
    ),
    ChainInfo(
        "HydraDX", "HDX", 12, _subscan("hydradx"),
        _endpoints(
            ("HydraDX Official", "wss://rpc.hydradx.cloud", "HydraDX"),
            ("Dwellir", "wss://hydradx-rpc.dwellir.com", "Dwellir"),
        ),
    ),
    ChainInfo(
        "Bifrost", "BNC", 12, _subscan("bifrost"),
        _endpoints(
            ("Bifrost Official", "wss://bifrost-rpc.liebi.com/ws", "Liebi"),
            ("OnFinality", "wss://bifrost-polkadot.api.onfinality.io/public-ws", "OnFinality"),
            ("Blast", "wss://bifrost-polkadot.public.blastapi.io", "Blast"),
        ),
    ),
    ChainInfo(
        "Polimec", "PLMC", 10, _subscan("polimec"),
        _endpoints(
            ("Polimec Official", "wss://rpc.polimec.org", "Polimec"),
            ("Dwellir", "wss://polimec-rpc.dwellir.com", "Dwellir"),
        ),
    ),
    ChainInfo("Parallel", "PARA", 12, _subscan("parallel")),
    ChainInfo("Interlay", "INTR", 10, _subscan("interlay")),
    ChainInfo("Phala", "PHA", 12, _subscan("phala")),
    ChainInfo("Unique", "UNQ", 18, _subscan("unique")),
    ChainInfo("Litentry", "LIT", 12, _subscan("litentry")),
    ChainInfo("Manta Atlantic", "MANTA", 18, _subscan("manta-atlantic")),
    ChainInfo("Avail", "AVAIL", 18, _subscan("avail")),
    ChainInfo("Energy Web X", "EWT", 18, _subscan("energyweb")),
    ChainInfo("Heima", "HEI", 12, _subscan("heima")),
    ChainInfo("Hydration", "HYD", 12, _subscan("hydration")),
    ChainInfo("Mythos", "MYTH", 12, _subscan("mythos")),
    ChainInfo("Pendulum", "PEN", 12, _subscan("pendulum")),
    ChainInfo("Peaq", "PEAQ", 18, _subscan("peaq")),
    ChainInfo("NeuroWeb", "NEURO", 12, _subscan("neuroweb")),
    ChainInfo("Darwinia", "RING", 18, _subscan("darwinia")),
    ChainInfo("KILT", "KILT", 15, _subscan("spiritnet")),
    # Kusama parachains
    ChainInfo(
        "Moonriver", "MOVR", 18, _subscan("moonriver"),
        _endpoints(
            ("Moonriver Official", "wss://wss.api.moonriver.moonbeam.network", "Moonbeam"),
            ("OnFinality", "wss://moonriver.api.onfinality.io/public-ws", "OnFinality"),
            ("Blast", "wss://moonriver.public.blastapi.io", "Blast"),
            ("Automata", "wss://1rpc.io/movr", "1RPC"),
        ),
        account_id_length=20,
    ),
    ChainInfo(
        "Karura", "KAR", 12, _subscan("karura"),
        _endpoints(
            ("Karura Official", "wss://karura-rpc.dwellir.com", "Dwellir"),
            ("OnFinality", "wss://karura.api.onfinality.io/public-ws", "OnFinality"),
            ("Blast", "wss://karura.public.blastapi.io", "Blast"),
            ("IBP", "wss://rpc.ibp.network/karura", "IBP"),
        ),
    ),
    ChainInfo("Statemine", "KSM", 12, _subscan("statemine")),
    ChainInfo("Shiden", "SDN", 18, _subscan("shiden")),
    ChainInfo("Khala", "PHA", 12, _subscan("khala")),
    ChainInfo("Calamari", "KMA", 12, _subscan("calamari")),
    ChainInfo("Basilisk", "BSX", 12, _subscan("basilisk")),
    ChainInfo("Crust", "CRU", 12, _subscan("crust")),
    ChainInfo("Robonomics", "XRT", 9, _subscan("robonomics")),
    # Standalone Substrate chains
    ChainInfo("Nodle", "NODL", 11, _subscan("nodle")),
    ChainInfo("Zeitgeist", "ZTG", 10, _subscan("zeitgeist")),
    ChainInfo("ChainX", "PCX", 8, _subscan("chainx")),
    ChainInfo("Edgeware", "EDG", 18, _subscan("edgeware")),
    ChainInfo("Shibuya", "SBY", 18, _subscan("shibuya"), testnet=True),
)

# Chains scanned by the multi-chain portfolio
ESSENTIAL_CHAIN_NAMES: Tuple[str, ...] = (
    "Polkadot",
    "Kusama",
    "AssetHub Polkadot",
    "Statemine",
    "Moonbeam",
    "Astar",
    "Acala",
    "Manta Atlantic",
    "Avail",
    "Calamari",
    "Centrifuge",
    "Bifrost",
    "Hydration",
    "Pendulum",
    "Phala",
    "Crust",
    "KILT",
    "Peaq",
    "Robonomics",
    "Unique",
    "Darwinia",
    "Energy Web X",
    "Heima",
    "NeuroWeb",
)

_BY_NAME: Dict[str, ChainInfo] = {chain.name.lower(): chain for chain in CHAINS}
_ENDPOINTS_BY_URL: Dict[str, RpcEndpoint] = {
    endpoint.url: endpoint for chain in CHAINS for endpoint in chain.rpc_endpoints
}


def get_chain(name: str | None) -> Optional[ChainInfo]:
    if not name:
        return None
    return _BY_NAME.get(name.strip().lower())


def mainnet_chains() -> List[ChainInfo]:
    return [chain for chain in CHAINS if not chain.testnet]


def essential_chains() -> List[ChainInfo]:
    return [_BY_NAME[name.lower()] for name in ESSENTIAL_CHAIN_NAMES]


def chains_with_endpoints() -> List[ChainInfo]:
    return [chain for chain in CHAINS if chain.rpc_endpoints]


def search_chains(query: str) -> List[ChainInfo]:
    needle = query.strip().lower()
    if not needle:
        return []
    return [chain for chain in CHAINS if needle in chain.name.lower() or needle in chain.token.lower()]


def endpoint_label(url: str) -> str:
    """Human label for an RPC URL, falling back to its hostname."""

    endpoint = _ENDPOINTS_BY_URL.get(url)
    if endpoint is not None:
        return endpoint.label
    return urlparse(url).hostname or url


__all__ = [
    "CHAINS",
    "ChainInfo",
    "ESSENTIAL_CHAIN_NAMES",
    "RpcEndpoint",
    "chains_with_endpoints",
    "endpoint_label",
    "essential_chains",
    "get_chain",
    "mainnet_chains",
    "search_chains",
]
