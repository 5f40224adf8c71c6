"""
Central configuration for tokenacl.

A single, typed configuration object that reads from environment variables
(12-factor style) using pydantic-settings.

Usage:

    from tokenacl.core.settings import get_settings

    settings = get_settings()
    depth = settings.runtime.max_invoke_depth
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RuntimeSettings(BaseSettings):
    """
    Ledger runtime settings: logging, nested invocation limits, clock.
    """

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True, extra="ignore")

    log_level: str = Field(
        default="INFO",
        validation_alias="TOKENACL_LOG_LEVEL",
        description="Root log level (DEBUG/INFO/WARNING/ERROR).",
    )
    max_invoke_depth: int = Field(
        default=4,
        ge=1,
        validation_alias="TOKENACL_MAX_INVOKE_DEPTH",
        description="Maximum nesting of program invocations inside one instruction.",
    )
    clock_override: Optional[int] = Field(
        default=None,
        validation_alias="TOKENACL_CLOCK_OVERRIDE",
        description="Fixed unix timestamp for the ledger clock (tests, replays).",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        v = (v or "INFO").upper()
        if v == "WARN":
            v = "WARNING"
        if v not in _LOG_LEVELS:
            return "INFO"
        return v


class ManagerSettings(BaseSettings):
    """
    Manager-specific limits.
    """

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True, extra="ignore")

    max_extra_accounts: int = Field(
        default=10,
        ge=0,
        validation_alias="TOKENACL_MAX_EXTRA_ACCOUNTS",
        description="Upper bound on extra accounts a gate may ask the Manager to resolve.",
    )


class TokenAclSettings(BaseSettings):
    """
    Root configuration object.

    Aggregates:
      - Runtime
      - Manager
    """

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    manager: ManagerSettings = Field(default_factory=ManagerSettings)


@lru_cache(maxsize=1)
def get_settings() -> TokenAclSettings:
    """
    Cached accessor for TokenAclSettings.

    Usage:
        from tokenacl.core.settings import get_settings
        settings = get_settings()
    """
    return TokenAclSettings()
