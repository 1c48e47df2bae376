import logging
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Time.Now World Time API"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/developer/api"

    # IP range store
    DB_PATH: str = "timenow.db"
    DATA_DIR: str = "ip_data"
    BATCH_SIZE: int = 10000

    # Use the first X-Forwarded-For entry as the caller address.
    # Only enable behind a proxy that overwrites the header.
    TRUST_FORWARDED_FOR: bool = False
    # Zone used when an address matches no stored range; None means 404
    IP_FALLBACK_TIMEZONE: Optional[str] = None

    LOG_LEVEL: str = "INFO"
    HOST: str = "localhost"
    PORT: int = 8000

    class Config:
        env_prefix = "TIMENOW_"
        case_sensitive = True


settings = Settings()


def setup_logging(log_level: str = "INFO"):
    """Configure the root logger at the given level name"""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)
    logging.getLogger().setLevel(level)
