# Configuration management

from pydantic_settings import BaseSettings  # type: ignore
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Azure File Share
    azure_share: str = ""
    azure_storage_account: str = ""
    azure_storage_access_key: str = ""
    azure_account_url: Optional[str] = None  # e.g. Azurite emulator endpoint
    azure_endpoint_suffix: str = "core.windows.net"

    # Transfers
    signed_url_ttl_hours: int = 4
    upload_spool_max_bytes: int = 4 * 1024 * 1024

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Observability
    metrics_enabled: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False

    def account_url(self, account: str) -> str:
        if self.azure_account_url:
            return self.azure_account_url
        return f"https://{account}.file.{self.azure_endpoint_suffix}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
