import os
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from shipping_mcp.services.client import ClientConfig

load_dotenv()

EASYPOST_CACHEABLE_PREFIXES = (
    "/account",
    "/carrier_types",
    "/addresses",
    "/shipments",
    "/customs_infos",
)

VEEQO_CACHEABLE_PREFIXES = (
    "/current_user",
    "/orders",
    "/products",
    "/sellables",
    "/stock_entries",
    "/customers",
    "/warehouses",
    "/stores",
    "/channels",
    "/shipments",
    "/allocations",
)


class Settings(BaseModel):
    # EasyPost Configuration
    easypost_api_key: str = Field(default="", alias="EASYPOST_API_KEY")
    easypost_base_url: str = Field(
        default="https://api.easypost.com/v2", alias="EASYPOST_BASE_URL"
    )

    # Veeqo Configuration
    veeqo_api_key: str = Field(default="", alias="VEEQO_API_KEY")
    veeqo_base_url: str = Field(default="https://api.veeqo.com", alias="VEEQO_BASE_URL")
    veeqo_webhook_secret: str = Field(default="", alias="VEEQO_WEBHOOK_SECRET")

    # HTTP / retry Configuration
    request_timeout: float = Field(default=30.0, alias="REQUEST_TIMEOUT")
    max_retries: int = Field(default=3, alias="MAX_RETRIES")
    retry_base_delay: float = Field(default=1.0, alias="RETRY_BASE_DELAY")
    retry_max_delay: float = Field(default=30.0, alias="RETRY_MAX_DELAY")

    # Cache Configuration
    enable_cache: bool = Field(default=True, alias="ENABLE_CACHE")
    cache_ttl_seconds: int = Field(default=300, alias="CACHE_TTL")
    cache_max_size: int = Field(default=1000, alias="CACHE_MAX_SIZE")
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # Logging / server Configuration
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    mcp_transport: str = Field(default="stdio", alias="MCP_TRANSPORT")

    def _client_config(self, **kwargs) -> ClientConfig:
        return ClientConfig(
            timeout=self.request_timeout,
            max_retries=self.max_retries,
            retry_base_delay=self.retry_base_delay,
            retry_max_delay=self.retry_max_delay,
            cache_enabled=self.enable_cache,
            cache_ttl=timedelta(seconds=self.cache_ttl_seconds),
            cache_max_size=self.cache_max_size,
            **kwargs,
        )

    def easypost_config(self) -> ClientConfig:
        return self._client_config(
            service_id="easypost",
            base_url=self.easypost_base_url,
            api_key=self.easypost_api_key,
            auth_style="basic",
            cacheable_prefixes=EASYPOST_CACHEABLE_PREFIXES,
            health_path="/account",
            user_agent="EasyPost-MCP-Server/0.1.0",
        )

    def veeqo_config(self) -> ClientConfig:
        return self._client_config(
            service_id="veeqo",
            base_url=self.veeqo_base_url,
            api_key=self.veeqo_api_key,
            auth_style="api-key",
            api_key_header="x-api-key",
            cacheable_prefixes=VEEQO_CACHEABLE_PREFIXES,
            health_path="/current_user",
            user_agent="Veeqo-MCP-Server/0.1.0",
        )


def load_settings() -> Settings:
    # Empty variables fall back to the defaults
    env = {k: v for k, v in os.environ.items() if v != ""}
    return Settings.model_validate(env)


global_settings = load_settings()
