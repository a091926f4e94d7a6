"""
Config -> Kernel Bridges.

Functions that convert LifecycleConfig sections into kernel inputs.  These
live in lifecycle_config (the producer) because the kernel must NEVER import
lifecycle_config.

Usage:
    from lifecycle_config.bridges import replacement_policy_from_config

    config = get_active_config()
    policy = replacement_policy_from_config(config)
"""

from __future__ import annotations

from lifecycle_config.schema import LifecycleConfig
from lifecycle_kernel.domain.liability import ReplacementPolicy


def replacement_policy_from_config(config: LifecycleConfig) -> ReplacementPolicy:
    return ReplacementPolicy(
        max_replacements_per_part=config.replacement_policy.max_replacements_per_part,
    )


def engine_kwargs_from_config(config: LifecycleConfig) -> dict:
    """Keyword arguments for ``init_engine_from_url``."""
    db = config.database
    return {
        "database_url": db.url,
        "echo": db.echo,
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
    }
