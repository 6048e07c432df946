import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from finvault.money import CurrencyFormat, get_format


@dataclass(frozen=True)
class Settings:
    db_url: str
    storage_path: str
    api_base_url: str
    sync_interval: float
    sync_timeout: float
    locale: str
    cache_ttl: float
    log_level: str

    @property
    def currency(self) -> CurrencyFormat:
        return get_format(self.locale)


def load_settings() -> Settings:
    load_dotenv()
    return Settings(
        db_url=os.getenv("FINVAULT_DB_URL", "sqlite:///finvault_local.db"),
        storage_path=os.getenv("FINVAULT_STORAGE_PATH", "finvault_storage.json"),
        api_base_url=os.getenv("FINVAULT_API_BASE_URL", "http://localhost:5000"),
        sync_interval=float(os.getenv("FINVAULT_SYNC_INTERVAL", "60")),
        sync_timeout=float(os.getenv("FINVAULT_SYNC_TIMEOUT", "10")),
        locale=os.getenv("FINVAULT_LOCALE", "en-IN"),
        cache_ttl=float(os.getenv("FINVAULT_CACHE_TTL", str(6 * 60 * 60))),
        log_level=os.getenv("FINVAULT_LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
