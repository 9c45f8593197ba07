from pydantic_settings import BaseSettings
from pathlib import Path
from typing import Optional

from shared.errors import ConfigurationError


class Settings(BaseSettings):
    DATABASE_URL: Optional[str] = None
    NATS_URL: Optional[str] = None
    NATS_SUBJECT: str = "ecommerce-events"
    LOG_LEVEL: str = "INFO"
    WORKER_BATCH_SIZE: int = 100
    WORKER_BATCH_WAIT: float = 0.5
    SERVICE_NAME: str = "E-Commerce Real-Time Processing System"

    class Config:
        env_file = Path(__file__).parent.parent / ".env"
        case_sensitive = True


def require(value: Optional[str], name: str) -> str:
    """Return a mandatory setting or fail fast when it is missing or empty."""
    if not value:
        raise ConfigurationError(f"{name} is not configured")
    return value


settings = Settings()
