"""
daofuzz Configuration

Loads all sections of daofuzz.toml. Environment variables override TOML values.
"""

from .loader import (
    FuzzConfig,
    FuzzRunConfig,
    LoggingConfig,
    ProtocolConfig,
    StakersConfig,
    load_config,
)

__all__ = [
    "FuzzConfig",
    "FuzzRunConfig",
    "LoggingConfig",
    "ProtocolConfig",
    "StakersConfig",
    "load_config",
]
