import pytest
from pydantic import ValidationError

from dotfolio.config import Settings


LEGACY_AND_PRIMARY = (
    "INDEXER_API_KEY",
    "SUBSCAN_API_KEY",
    "VITE_SUBSCAN_API_KEY",
    "ALTERNATE_REST_BASE_URL",
    "QUICKNODE_URL",
    "VITE_QUICKNODE_URL",
    "CHAIN_RPC_PRIORITY_URL",
    "QUICKNODE_WSS_URL",
    "VITE_QUICKNODE_WSS_URL",
    "CHAIN_RPC_ENDPOINT_LIST",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in LEGACY_AND_PRIMARY:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.default_chain == "Polkadot"
    assert settings.indexer_requests_per_second == 5.0
    assert settings.has_indexer_key is False
    assert settings.has_alternate_rest is False
    assert settings.rpc_endpoint_urls == []


def test_indexer_key_primary_env(monkeypatch):
    monkeypatch.setenv("INDEXER_API_KEY", "primary-key")
    monkeypatch.setenv("VITE_SUBSCAN_API_KEY", "legacy-key")

    settings = Settings(_env_file=None)

    assert settings.indexer_api_key == "primary-key"


def test_indexer_key_legacy_subscan_alias(monkeypatch):
    monkeypatch.setenv("SUBSCAN_API_KEY", "subscan-key")

    assert Settings(_env_file=None).indexer_api_key == "subscan-key"


def test_indexer_key_dashboard_fallback(monkeypatch):
    """Dashboard-era VITE_* names still configure the backend."""

    monkeypatch.setenv("VITE_SUBSCAN_API_KEY", "from-dashboard")
    monkeypatch.setenv("VITE_QUICKNODE_URL", "https://example.quiknode.pro/abc")

    settings = Settings(_env_file=None)

    assert settings.indexer_api_key == "from-dashboard"
    assert settings.alternate_rest_base_url == "https://example.quiknode.pro/abc"
    assert settings.has_alternate_rest is True


def test_rpc_endpoint_urls_priority_first_and_deduplicated(monkeypatch):
    monkeypatch.setenv("CHAIN_RPC_ENDPOINT_LIST", "wss://a.example, wss://b.example ,,wss://c.example")
    monkeypatch.setenv("QUICKNODE_WSS_URL", "wss://b.example")

    settings = Settings(_env_file=None)

    assert settings.rpc_endpoint_urls == ["wss://b.example", "wss://a.example", "wss://c.example"]


def test_rate_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, indexer_requests_per_second=0)
