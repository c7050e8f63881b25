"""
Configuration management using pydantic-settings.

Values come from ANGOR_* environment variables or a .env file; CLI options override them.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from angorspend.constants import DEFAULT_CACHE_FILE, DEFAULT_REQUEST_TIMEOUT, PROJECTS_PAGE_SIZE
from angorspend.models import NetworkType
from angorspend.wallet.derivation import DerivationContext


class SpendSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ANGOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    mnemonic: SecretStr = SecretStr("")
    passphrase: SecretStr = SecretStr("")
    payout_address: str = ""

    network: NetworkType = NetworkType.TESTNET
    # Overrides the per-network default indexer
    indexer_url: str | None = None

    cache_file: Path = Path(DEFAULT_CACHE_FILE)
    page_size: int = Field(default=PROJECTS_PAGE_SIZE, ge=1, le=1000)
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)

    log_level: str = "INFO"

    @property
    def effective_indexer_url(self) -> str:
        return (self.indexer_url or self.network.default_indexer_url).rstrip("/")

    @property
    def currency_symbol(self) -> str:
        return self.network.currency_symbol

    def derivation_context(self) -> DerivationContext:
        return DerivationContext(
            seed_phrase=self.mnemonic.get_secret_value(),
            passphrase=self.passphrase.get_secret_value(),
            network=self.network,
        )


def get_settings(**overrides: object) -> SpendSettings:
    """Load settings from the environment, applying non-None overrides."""
    return SpendSettings(**{k: v for k, v in overrides.items() if v is not None})
