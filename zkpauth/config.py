from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Server and client settings, overridable through ZKPAUTH_* environment variables
    """
    model_config = SettingsConfigDict(env_prefix="ZKPAUTH_")

    # Group generation
    bit_length: int = 1024
    # None sizes the search cap from the bit length
    max_attempts: Optional[int] = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    max_pending_challenges: int = 100000
    max_sessions: int = 100000

    # Client
    api_url: str = "http://localhost:8000"

    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
