"""
Configuration management using pydantic-settings.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kaswallet.backends.rest import DEFAULT_API_URL
from kaswallet.backends.wrpc import DEFAULT_WRPC_URL
from kaswallet.constants import DEFAULT_FEE, DUST_THRESHOLD


class WalletSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="KASWALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    network: Literal["mainnet", "testnet", "simnet", "devnet"] = "mainnet"

    api_url: str = DEFAULT_API_URL
    wrpc_url: str = DEFAULT_WRPC_URL
    broadcast_transport: Literal["rest", "wrpc"] = "rest"
    request_timeout: float = Field(default=30.0, gt=0, description="Seconds per network call")

    fee: int = Field(default=DEFAULT_FEE, ge=0, description="Flat fee in sompi")
    dust_threshold: int = Field(default=DUST_THRESHOLD, ge=0, description="Minimum output in sompi")

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


def get_settings() -> WalletSettings:
    return WalletSettings()
