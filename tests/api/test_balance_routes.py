from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from dotfolio.main import app
from dotfolio.providers.base import BalanceProvider, ProviderConfigError, ProviderError, ProviderSpec
from dotfolio.services.balance_resolver import MultiProviderResolver
from dotfolio.services.endpoint_health import EndpointReport
from dotfolio.services.portfolio import PortfolioResult

client = TestClient(app)

SCENARIO_ADDRESS = "5F5522o328T8MNsjDBTWXjfJvtdQsnUne2wjGvwLC4dLdmBC"


class FixedProvider(BalanceProvider):

    def __init__(self, name, outcome):
        super().__init__(ProviderSpec(name=name, endpoint_urls=(), decimal_places=10, token_symbol="DOT"))
        self.outcome = outcome

    async def ready(self) -> bool:
        return True

    async def _query(self, address, report, cancel):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self._build_result(*self.outcome)


def fake_resolver(*providers):
    resolver = MultiProviderResolver(list(providers), chain="Polkadot")
    return lambda chain=None: resolver


def test_root_info():
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Dotfolio API"


def test_health_lists_providers():
    resp = client.get("/healthz")
    assert resp.status_code == 200

    data = resp.json()
    assert data["chain"] == "Polkadot"
    assert set(data["providers"]) >= {"Indexer", "Chain RPC"}
    assert data["total_providers"] == len(data["providers"])


def test_balance_resolution(monkeypatch):
    monkeypatch.setattr(
        "dotfolio.api.balances.get_resolver",
        fake_resolver(
            FixedProvider("Indexer", (1_000_000_000_000, 500_000_000_000)),
            FixedProvider("Chain RPC", ProviderError("unused")),
        ),
    )

    resp = client.get(f"/balances/{SCENARIO_ADDRESS}")

    assert resp.status_code == 200
    data = resp.json()
    assert data["outcome"] == "found"
    assert data["result"]["total"] == "150"
    assert data["result"]["provider"] == "Indexer"
    assert len(data["attempts"]) == 1


def test_balance_all_failed(monkeypatch):
    monkeypatch.setattr(
        "dotfolio.api.balances.get_resolver",
        fake_resolver(FixedProvider("Indexer", ProviderError("down"))),
    )

    resp = client.get(f"/balances/{SCENARIO_ADDRESS}")

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "all_providers_failed"
    assert resp.json()["result"] is None


def test_blank_address_rejected():
    resp = client.get("/balances/%20%20")
    assert resp.status_code == 400


def test_unknown_chain_is_404():
    resp = client.get(f"/balances/{SCENARIO_ADDRESS}", params={"chain": "Atlantis"})
    assert resp.status_code == 404
    assert "Unknown chain" in resp.json()["detail"]


def test_compare_reports_every_attempt(monkeypatch):
    monkeypatch.setattr(
        "dotfolio.api.balances.get_resolver",
        fake_resolver(
            FixedProvider("Indexer", (10_000_000_000, 0)),
            FixedProvider("Chain RPC", ProviderError("down")),
        ),
    )

    resp = client.get(f"/balances/{SCENARIO_ADDRESS}/compare")

    assert resp.status_code == 200
    data = resp.json()
    assert [a["provider"] for a in data["attempts"]] == ["Indexer", "Chain RPC"]
    assert [a["status"] for a in data["attempts"]] == ["success", "transport_error"]
    assert data["successful"] == 1


def test_portfolio_route(monkeypatch):
    service = MagicMock()
    service.get_portfolio = AsyncMock(return_value=PortfolioResult(
        address=SCENARIO_ADDRESS,
        chains_queried=["Polkadot"],
        chains_without_balance=["Polkadot"],
    ))
    monkeypatch.setattr("dotfolio.api.balances.get_portfolio_service", lambda: service)

    resp = client.get(f"/portfolio/{SCENARIO_ADDRESS}")

    assert resp.status_code == 200
    assert resp.json()["chains_queried"] == ["Polkadot"]
    service.get_portfolio.assert_awaited_once_with(SCENARIO_ADDRESS)


def test_portfolio_route_without_key(monkeypatch):
    service = MagicMock()
    service.get_portfolio = AsyncMock(side_effect=ProviderConfigError("Indexer API key not configured"))
    monkeypatch.setattr("dotfolio.api.balances.get_portfolio_service", lambda: service)

    resp = client.get(f"/portfolio/{SCENARIO_ADDRESS}")

    assert resp.status_code == 503


def test_endpoint_health_route(monkeypatch):
    checker = MagicMock()
    checker.check_all = AsyncMock(return_value=[EndpointReport(
        chain="Polkadot",
        endpoint="Dwellir",
        operator="Dwellir",
        url="wss://polkadot-rpc.dwellir.com",
        status="failed",
        token="DOT",
        error="Connection timeout",
    )])
    monkeypatch.setattr("dotfolio.api.balances.get_endpoint_health_checker", lambda: checker)

    resp = client.get("/endpoints/health", params={"address": SCENARIO_ADDRESS, "chain": "Polkadot"})

    assert resp.status_code == 200
    assert resp.json()[0]["status"] == "failed"
    checker.check_all.assert_awaited_once_with(SCENARIO_ADDRESS, chains=["Polkadot"])


def test_endpoint_health_requires_valid_address():
    resp = client.get("/endpoints/health", params={"address": "not-an-address"})
    assert resp.status_code == 400


def test_health_reports_credentials_and_queue():
    data = client.get("/healthz").json()

    assert set(data["credentials"]) == {"indexer_api_key", "alternate_rest"}
    assert data["indexer_queue"]["queued"] == 0
    assert data["indexer_queue"]["processing"] is False


def test_health_degrades_on_unknown_default_chain(monkeypatch):
    def broken_resolver(chain=None):
        raise ValueError("Unknown chain: Atlantis")

    monkeypatch.setattr("dotfolio.api.health.get_resolver", broken_resolver)

    resp = client.get("/healthz")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["error"] == "Unknown chain: Atlantis"
    assert data["total_providers"] == 0


def test_chains_search():
    resp = client.get("/chains", params={"q": "moon"})

    assert resp.status_code == 200
    chains = {chain["name"]: chain for chain in resp.json()}
    assert set(chains) == {"Moonbeam", "Moonriver"}
    assert chains["Moonbeam"]["account_id_length"] == 20
    assert chains["Moonbeam"]["rpc_endpoints"]


def test_chains_hide_testnets_by_default():
    names = {chain["name"] for chain in client.get("/chains").json()}
    assert "Polkadot" in names
    assert "Westend" not in names

    with_testnets = {chain["name"] for chain in client.get("/chains", params={"include_testnets": True}).json()}
    assert "Westend" in with_testnets
