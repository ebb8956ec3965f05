from datetime import timedelta

import main
from shipping_mcp.services import RedisCache
from shipping_mcp.settings import (
    EASYPOST_CACHEABLE_PREFIXES,
    Settings,
    load_settings,
)


def test_defaults():
    settings = Settings()
    assert settings.easypost_base_url == "https://api.easypost.com/v2"
    assert settings.max_retries == 3
    assert settings.cache_ttl_seconds == 300
    assert settings.redis_url is None


def test_env_aliases(monkeypatch):
    monkeypatch.setenv("VEEQO_API_KEY", "vq_123")
    monkeypatch.setenv("MAX_RETRIES", "5")
    monkeypatch.setenv("ENABLE_CACHE", "false")
    monkeypatch.setenv("CACHE_TTL", "60")
    monkeypatch.setenv("REQUEST_TIMEOUT", "")

    settings = load_settings()

    assert settings.veeqo_api_key == "vq_123"
    assert settings.max_retries == 5
    assert settings.enable_cache is False
    assert settings.request_timeout == 30.0

    config = settings.veeqo_config()
    assert config.cache_enabled is False
    assert config.cache_ttl == timedelta(seconds=60)
    assert config.auth_style == "api-key"
    assert config.health_path == "/current_user"


def test_easypost_config():
    config = Settings.model_validate({"EASYPOST_API_KEY": "EZTK1", "MAX_RETRIES": 1}).easypost_config()

    assert config.service_id == "easypost"
    assert config.auth_style == "basic"
    assert config.api_key == "EZTK1"
    assert config.max_retries == 1
    assert config.cacheable_prefixes == EASYPOST_CACHEABLE_PREFIXES
    assert config.is_cacheable("GET", "/shipments/shp_1")
    assert not config.is_cacheable("GET", "/rates")


def test_create_client_adds_redis_when_configured():
    settings = Settings.model_validate({"REDIS_URL": "redis://localhost:6379/0"})

    client = main.create_client(settings.easypost_config(), settings)

    assert isinstance(client.cache.shared, RedisCache)


def test_create_client_without_redis():
    settings = Settings()

    client = main.create_client(settings.veeqo_config(), settings)

    assert client.cache.shared is None
