"""
Configuration Loader (``lifecycle_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed
``lifecycle_config.schema`` dataclasses.  The single public entry point for
runtime config is ``lifecycle_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required sections have no silent defaults.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrongly typed values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from lifecycle_config.schema import (
    DatabaseConfig,
    LifecycleConfig,
    LoggingConfig,
    ReplacementPolicyConfig,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _as_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{section}.{key} must be an integer, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    url = data["url"]
    if not isinstance(url, str) or not url:
        raise ValueError(f"database.url must be a non-empty string, got {url!r}")
    return DatabaseConfig(
        url=url,
        echo=bool(data.get("echo", False)),
        pool_size=_as_int("database", "pool_size", data.get("pool_size", 10)),
        max_overflow=_as_int("database", "max_overflow", data.get("max_overflow", 5)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {_LOG_LEVELS}, got {level!r}")
    return LoggingConfig(level=level)


def parse_replacement_policy(data: dict[str, Any]) -> ReplacementPolicyConfig:
    limit = data.get("max_replacements_per_part")
    if limit is not None:
        limit = _as_int("replacement_policy", "max_replacements_per_part", limit)
        if limit < 1:
            raise ValueError(
                f"replacement_policy.max_replacements_per_part must be >= 1, got {limit}"
            )
    return ReplacementPolicyConfig(max_replacements_per_part=limit)


def parse_config(data: dict[str, Any]) -> LifecycleConfig:
    """
    Parse a whole configuration set.

    Preconditions:
        - ``data`` contains ``config_id``, ``version`` and a ``database``
          section with ``url``.
    """
    return LifecycleConfig(
        config_id=data["config_id"],
        version=_as_int("root", "version", data["version"]),
        database=parse_database(data["database"]),
        logging=parse_logging(data.get("logging") or {}),
        replacement_policy=parse_replacement_policy(data.get("replacement_policy") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
