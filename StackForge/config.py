"""
Configuration Module

Responsibility:
- Read StackForge settings from environment variables
- Provide defaults for every setting so nothing is required to run locally
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, List, Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # Value handed to the Applier for a deferred slot without its own placeholder
    default_placeholder: Optional[Any]
    default_region: str
    strict_contracts: bool
    log_level: str
    cors_origins: List[str]


def load_settings() -> Settings:
    """Build settings from the current environment (uncached)."""
    placeholder = os.environ.get("STACKFORGE_PLACEHOLDER", "")

    return Settings(
        default_placeholder=placeholder or None,
        default_region=os.environ.get("STACKFORGE_DEFAULT_REGION", "us-east-1"),
        strict_contracts=_env_bool("STACKFORGE_STRICT_CONTRACTS", True),
        log_level=os.environ.get("STACKFORGE_LOG_LEVEL", "INFO").upper(),
        cors_origins=os.environ.get("STACKFORGE_CORS_ORIGINS", "*").split(","),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    return load_settings()
