from finvault.config import load_settings


def test_defaults(monkeypatch):
    for name in ("FINVAULT_DB_URL", "FINVAULT_LOCALE", "FINVAULT_SYNC_INTERVAL", "FINVAULT_CACHE_TTL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("finvault.config.load_dotenv", lambda: None)
    settings = load_settings()
    assert settings.db_url == "sqlite:///finvault_local.db"
    assert settings.sync_interval == 60
    assert settings.cache_ttl == 6 * 60 * 60
    assert settings.currency.symbol == "₹"


def test_environment_overrides(monkeypatch):
    monkeypatch.setattr("finvault.config.load_dotenv", lambda: None)
    monkeypatch.setenv("FINVAULT_LOCALE", "en-US")
    monkeypatch.setenv("FINVAULT_SYNC_TIMEOUT", "2.5")
    settings = load_settings()
    assert settings.currency.symbol == "$"
    assert settings.sync_timeout == 2.5

