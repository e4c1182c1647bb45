"""Configuration management for PetWorld assembly building.

This module defines the options for reading multi-model mmCIF files,
building assemblies and logging. Values can come from defaults, a YAML file
or ``PETWORLD_``-prefixed environment variables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ParserConfig(BaseModel):
    """Configuration for reading atom_site records."""

    remove_hydrogens: bool = Field(default=False, description="Remove hydrogen atoms")
    remove_waters: bool = Field(default=True, description="Remove water residues")
    alt_loc_policy: str = Field(
        default="occupancy",
        description="How to resolve alternate locations ('occupancy' or 'first')",
    )

    @field_validator("alt_loc_policy")
    @classmethod
    def _check_alt_loc_policy(cls, value: str) -> str:
        if value not in ("occupancy", "first"):
            raise ValueError(f"alt_loc_policy must be 'occupancy' or 'first', got {value!r}")
        return value


class AssemblyConfig(BaseModel):
    """Configuration for assembly building."""

    assembly_id: str = Field(default="1", description="Default assembly to build")
    max_operators: int = Field(
        default=1000,
        description="Warn when one model's operator group is larger than this",
    )
    max_atoms: int = Field(
        default=5_000_000,
        description="Warn when an assembled structure has more atoms than this",
    )
    chain_id_separator: str = Field(
        default="_",
        description="Separator between asym id and operator name for replicated chains",
    )


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    level: str = Field(default="INFO", description="Console log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file")

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value


class Config(BaseSettings):
    """Main configuration for PetWorld."""

    parser: ParserConfig = Field(default_factory=ParserConfig)
    assembly: AssemblyConfig = Field(default_factory=AssemblyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_prefix": "PETWORLD_", "env_nested_delimiter": "__"}

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        return cls(**data)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")


__all__ = ["Config", "ParserConfig", "AssemblyConfig", "LoggingConfig"]
