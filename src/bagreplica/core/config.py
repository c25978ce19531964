# bagreplica/src/bagreplica/core/config.py

from typing import Optional

import keyring
from keyring.errors import KeyringError
from pydantic import Field
from pydantic_settings import BaseSettings

KEYRING_SERVICE = "bagreplica"


class Settings(BaseSettings):
    # Replica store selection
    store_backend: str = Field(default="local")
    store_dir: str = Field(default="./replica-store")
    store_group: str = Field(default="aip_store")
    delete_group: str = Field(default="aip_trash")

    # DuraCloud connection
    duracloud_url: str = Field(default="http://localhost:8080")
    duracloud_username: Optional[str] = Field(default=None)
    duracloud_password: Optional[str] = Field(default=None)
    duracloud_store_id: Optional[str] = Field(default=None)
    request_timeout: float = Field(default=60.0)

    # Transfer behaviour
    max_retries: int = Field(default=3, ge=0)
    retry_backoff_base_ms: int = Field(default=1000, ge=0)
    retry_backoff_multiplier: float = Field(default=2.0, ge=1.0)
    retry_backoff_max_ms: int = Field(default=30000, ge=0)
    retry_jitter_ms: int = Field(default=0, ge=0)
    media_type: str = Field(default="application/zip")
    skip_unchanged: bool = Field(default=True)

    odometer_dir: str = Field(default="./replica-store")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "BAGREPLICA_",
        "extra": "ignore",
    }

    def get_duracloud_password(self) -> Optional[str]:
        """Password from the keyring when one is stored, else from the environment."""
        try:
            secure = keyring.get_password(KEYRING_SERVICE, "duracloud_password")
        except KeyringError:
            secure = None
        return secure or self.duracloud_password

    def retry_policy(self):
        from bagreplica.replication.transfer import RetryPolicy

        return RetryPolicy(
            max_retries=self.max_retries,
            backoff_base_ms=self.retry_backoff_base_ms,
            backoff_multiplier=self.retry_backoff_multiplier,
            backoff_max_ms=self.retry_backoff_max_ms,
            jitter_ms=self.retry_jitter_ms,
        )


# Instantiate settings
settings = Settings()
