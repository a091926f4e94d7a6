"""
LifecycleConfig schema.

Frozen dataclasses produced by the loader from a YAML configuration set.
The kernel never sees these types; bridges.py converts the parts it needs
into kernel value objects.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class ReplacementPolicyConfig:
    """Cap on REPLACEMENT quantity per (unit, part code); None disables it."""

    max_replacements_per_part: int | None = None


@dataclass(frozen=True)
class LifecycleConfig:
    """The sole runtime configuration artifact."""

    config_id: str
    version: int
    database: DatabaseConfig
    logging: LoggingConfig
    replacement_policy: ReplacementPolicyConfig
    checksum: str
