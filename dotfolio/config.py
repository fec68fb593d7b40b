import os

from pathlib import Path
from typing import Any, List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick up the dashboard's legacy ``VITE_*`` variable names."""

        super().model_post_init(__context)

        legacy = {
            "indexer_api_key": "VITE_SUBSCAN_API_KEY",
            "alternate_rest_base_url": "VITE_QUICKNODE_URL",
            "alternate_rest_api_key": "VITE_QUICKNODE_API_KEY",
            "chain_rpc_priority_url": "VITE_QUICKNODE_WSS_URL",
        }
        for field_name, env_name in legacy.items():
            if not getattr(self, field_name):
                fallback = os.getenv(env_name)
                if fallback:
                    object.__setattr__(self, field_name, fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    default_chain: str = Field(default="Polkadot", description="Chain used when a request names none")

    # Indexer (Subscan)
    indexer_base_url: str = Field(
        default="",
        description="Override for the indexer base URL of the selected chain",
    )
    indexer_api_key: str = Field(
        default="",
        description="Indexer API key",
        validation_alias=AliasChoices("indexer_api_key", "INDEXER_API_KEY", "SUBSCAN_API_KEY"),
    )
    indexer_requests_per_second: float = Field(
        default=5.0,
        gt=0,
        description="Published indexer rate ceiling",
    )
    indexer_timeout_seconds: float = Field(default=15.0, gt=0, description="Indexer request timeout")

    # Alternate REST (QuickNode)
    alternate_rest_base_url: str = Field(
        default="",
        description="Base URL of the alternate REST balance API",
        validation_alias=AliasChoices("alternate_rest_base_url", "ALTERNATE_REST_BASE_URL", "QUICKNODE_URL"),
    )
    alternate_rest_api_key: str = Field(
        default="",
        description="API key for the alternate REST balance API",
        validation_alias=AliasChoices("alternate_rest_api_key", "ALTERNATE_REST_API_KEY", "QUICKNODE_API_KEY"),
    )
    alternate_rest_requests_per_second: float = Field(
        default=0.0,
        ge=0,
        description="Rate ceiling for the alternate REST API (0 disables throttling)",
    )
    alternate_rest_timeout_seconds: float = Field(default=15.0, gt=0, description="Alternate REST request timeout")

    # Direct chain RPC
    chain_rpc_endpoint_list: str = Field(
        default="",
        description="Comma-separated WebSocket endpoints replacing the registry mirrors",
    )
    chain_rpc_priority_url: str = Field(
        default="",
        description="WebSocket endpoint tried before every other mirror",
        validation_alias=AliasChoices("chain_rpc_priority_url", "CHAIN_RPC_PRIORITY_URL", "QUICKNODE_WSS_URL"),
    )
    chain_rpc_parallel: bool = Field(default=False, description="Race all RPC endpoints instead of rotating")
    rpc_connect_timeout_seconds: float = Field(default=8.0, gt=0, description="WebSocket connect timeout")
    rpc_ready_timeout_seconds: float = Field(default=5.0, gt=0, description="RPC readiness probe timeout")
    rpc_query_timeout_seconds: float = Field(default=10.0, gt=0, description="Storage query timeout")

    # Endpoint comparison
    endpoint_health_pause_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Pause between endpoint health checks",
    )

    @property
    def has_indexer_key(self) -> bool:
        return bool(self.indexer_api_key)

    @property
    def has_alternate_rest(self) -> bool:
        return bool(self.alternate_rest_base_url)

    @property
    def rpc_endpoint_urls(self) -> List[str]:
        """Configured RPC endpoint override, priority URL first."""

        urls = [part.strip() for part in self.chain_rpc_endpoint_list.split(",") if part.strip()]
        if self.chain_rpc_priority_url:
            priority = self.chain_rpc_priority_url.strip()
            urls = [priority] + [url for url in urls if url != priority]
        return urls


# Global settings instance
settings = Settings()
