"""Mini README: Centralised configuration for the grant ledger.

Structure:
    * BudgetPolicy - how the ledger reacts when allocations miss the grant total.
    * GrantLedgerSettings - Pydantic model describing runtime configuration.
    * get_settings - cached accessor for environment-aware settings.

Usage:
    Values are read from ``GRANTLEDGER_*`` environment variables or a local
    ``.env`` file. The ledger document lives at
    ``data_directory / ledger_filename``; the presentation layer decides the
    directory, the ledger only consumes the resulting path.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class BudgetPolicy(str, Enum):
    """Strictness applied when budget categories do not sum to the grant total."""

    IGNORE = "ignore"
    WARN = "warn"
    STRICT = "strict"


class GrantLedgerSettings(BaseSettings):
    """Runtime configuration for the grant ledger service."""

    environment: str = Field(
        "development",
        description="Environment label controlling debug toggles and logging levels.",
    )
    log_level: str = Field("INFO", description="Root logging level for CLI and service runs.")
    data_directory: Path = Field(
        Path("data"),
        description="Directory holding the persisted ledger document.",
    )
    ledger_filename: str = Field(
        "grants-data.json",
        description="File name of the JSON document storing grants and expenses.",
    )
    budget_policy: BudgetPolicy = Field(
        BudgetPolicy.WARN,
        description="Reaction to grants whose budget categories do not sum to the total amount.",
    )
    budget_tolerance: float = Field(
        0.01,
        ge=0,
        description="Absolute difference tolerated before a budget counts as unbalanced.",
    )
    interface_host: str = Field(
        "127.0.0.1",
        description="Network interface for the ledger API to bind to.",
    )
    interface_port: int = Field(
        8000,
        description="Port the ledger API exposes.",
        ge=1,
        le=65535,
    )

    class Config:
        env_prefix = "GRANTLEDGER_"
        env_file = ".env"
        case_sensitive = False

    @validator("data_directory", pre=True)
    def _expand_path(cls, value: Optional[str | Path]) -> Path:
        """Expand user directories so ``~/grants`` works from the shell."""

        return Path(value).expanduser().resolve()

    @property
    def ledger_path(self) -> Path:
        """Full path of the ledger document."""

        return self.data_directory / self.ledger_filename


@lru_cache()
def get_settings() -> GrantLedgerSettings:
    """Return cached settings, ensuring consistent configuration across modules."""

    return GrantLedgerSettings()
