"""
lifecycle_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  Returns a frozen ``LifecycleConfig``.

Architecture position:
    Configuration.  This package sits above ``lifecycle_kernel`` and below
    ``lifecycle_services``.  The kernel MUST NEVER import from
    ``lifecycle_config``; bridges.py translates config sections into kernel
    value objects.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``KeyError`` / ``ValueError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LIFECYCLE_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying recorded events to the configuration (notably the
    replacement policy) in force.
"""

from __future__ import annotations

from pathlib import Path

from lifecycle_config.loader import load_yaml_file, parse_config
from lifecycle_config.schema import (
    DatabaseConfig,
    LifecycleConfig,
    LoggingConfig,
    ReplacementPolicyConfig,
)
from lifecycle_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration set
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LifecycleConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Path to a YAML configuration set.  Defaults to
            lifecycle_config/sets/default.yaml.

    Returns:
        LifecycleConfig -- frozen runtime configuration.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value has the wrong type or range.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info(
        "LIFECYCLE_CONFIG_TRACE",
        extra={
            "trace_type": "LIFECYCLE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "max_replacements_per_part": config.replacement_policy.max_replacements_per_part,
        },
    )
    return config


__all__ = [
    "DatabaseConfig",
    "LifecycleConfig",
    "LoggingConfig",
    "ReplacementPolicyConfig",
    "get_active_config",
]
