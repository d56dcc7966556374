"""
daofuzz TOML Configuration Loader

Loads every section of daofuzz.toml with environment variable overrides.
Each section is a dataclass with `from_dict` and, where it has overridable
fields, `apply_env`.

Environment variable mapping:
    [run] num_runs       → DAOFUZZ_NUM_RUNS
    [run] seed           → DAOFUZZ_SEED
    [run] mode           → DAOFUZZ_MODE
    [protocol] epoch_period → DAOFUZZ_EPOCH_PERIOD
    [stakers] count      → DAOFUZZ_STAKER_COUNT
    [logging] level      → DAOFUZZ_LOG_LEVEL
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import (
    DEFAULT_EARLY_PHASE_RATIO,
    DEFAULT_EPOCH_PERIOD,
    DEFAULT_NETWORK_FEE_BPS,
    DEFAULT_NUM_RUNS,
    DEFAULT_REBATE_BPS,
    DEFAULT_REPORT_EVERY_EPOCHS,
    DEFAULT_REWARD_BPS,
    DEFAULT_STAKER_COUNT,
    DEFAULT_STEP_SECONDS,
    BPS,
    MAX_NETWORK_FEE_BPS,
    PRECISION,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)

RUN_MODES = ("dao", "staking")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ---------------------------------------------------------------------------
# Section dataclasses, one per [section] of daofuzz.example.toml
# ---------------------------------------------------------------------------


@dataclass
class ProtocolConfig:
    """[protocol] section: deployment parameters of the system under test."""
    genesis_time: int = 1_600_000_000
    start_delay: int = 20
    epoch_period: int = DEFAULT_EPOCH_PERIOD
    min_campaign_duration: int = 0
    network_fee_bps: int = DEFAULT_NETWORK_FEE_BPS
    reward_bps: int = DEFAULT_REWARD_BPS
    rebate_bps: int = DEFAULT_REBATE_BPS

    @property
    def start_time(self) -> int:
        """Timestamp epoch 1 starts at."""
        return self.genesis_time + self.start_delay

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProtocolConfig":
        return cls(
            genesis_time=data.get("genesis_time", 1_600_000_000),
            start_delay=data.get("start_delay", 20),
            epoch_period=data.get("epoch_period", DEFAULT_EPOCH_PERIOD),
            min_campaign_duration=data.get("min_campaign_duration", 0),
            network_fee_bps=data.get("network_fee_bps", DEFAULT_NETWORK_FEE_BPS),
            reward_bps=data.get("reward_bps", DEFAULT_REWARD_BPS),
            rebate_bps=data.get("rebate_bps", DEFAULT_REBATE_BPS),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("DAOFUZZ_EPOCH_PERIOD"):
            self.epoch_period = int(v)
        if v := os.environ.get("DAOFUZZ_MIN_CAMPAIGN_DURATION"):
            self.min_campaign_duration = int(v)


@dataclass
class FuzzRunConfig:
    """
    [run] section: loop length, randomness and action mix.

    Attributes:
        num_runs: Number of loop iterations
        seed: Seed of the action generator's RNG; None draws one
        step_seconds: Time advanced per iteration
        early_phase_ratio: Fraction of the run using the deposit-heavy weights
        report_every_epochs: Scoreboard log interval
        mode: "dao" for the full action mix, "staking" for staking actions only
        invalid_ratio: Chance a parameterized action is generated invalid
    """
    num_runs: int = DEFAULT_NUM_RUNS
    seed: Optional[int] = None
    step_seconds: int = DEFAULT_STEP_SECONDS
    early_phase_ratio: float = DEFAULT_EARLY_PHASE_RATIO
    report_every_epochs: int = DEFAULT_REPORT_EVERY_EPOCHS
    mode: str = "dao"
    invalid_ratio: float = 0.1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FuzzRunConfig":
        return cls(
            num_runs=data.get("num_runs", DEFAULT_NUM_RUNS),
            seed=data.get("seed"),
            step_seconds=data.get("step_seconds", DEFAULT_STEP_SECONDS),
            early_phase_ratio=data.get("early_phase_ratio", DEFAULT_EARLY_PHASE_RATIO),
            report_every_epochs=data.get("report_every_epochs", DEFAULT_REPORT_EVERY_EPOCHS),
            mode=data.get("mode", "dao"),
            invalid_ratio=data.get("invalid_ratio", 0.1),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("DAOFUZZ_NUM_RUNS"):
            self.num_runs = int(v)
        if v := os.environ.get("DAOFUZZ_SEED"):
            self.seed = int(v)
        if v := os.environ.get("DAOFUZZ_MODE"):
            self.mode = v


@dataclass
class StakersConfig:
    """[stakers] section."""
    count: int = DEFAULT_STAKER_COUNT
    initial_tokens: int = 10_000

    @property
    def initial_balance(self) -> int:
        """Initial token balance per staker in base units."""
        return self.initial_tokens * PRECISION

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakersConfig":
        return cls(
            count=data.get("count", DEFAULT_STAKER_COUNT),
            initial_tokens=data.get("initial_tokens", 10_000),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("DAOFUZZ_STAKER_COUNT"):
            self.count = int(v)


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file: str = ""
    file_output: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=data.get("level", "INFO"),
            file=data.get("file", ""),
            file_output=data.get("file_output", False),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("DAOFUZZ_LOG_LEVEL"):
            self.level = v.upper()


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class FuzzConfig:
    """
    Unified fuzz configuration.

    Loads every section of daofuzz.toml and applies environment variable
    overrides.
    """
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    run: FuzzRunConfig = field(default_factory=FuzzRunConfig)
    stakers: StakersConfig = field(default_factory=StakersConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FuzzConfig":
        """Create FuzzConfig from a parsed TOML dict."""
        return cls(
            protocol=ProtocolConfig.from_dict(data.get("protocol", {})),
            run=FuzzRunConfig.from_dict(data.get("run", {})),
            stakers=StakersConfig.from_dict(data.get("stakers", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "FuzzConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with env overrides).

        Raises:
            ConfigurationError: if the file is not valid TOML
        """
        path = Path(config_path)
        if not path.exists():
            logger.debug("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.protocol.apply_env()
        self.run.apply_env()
        self.stakers.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if self.protocol.epoch_period <= 0:
            raise ConfigurationError("epoch_period must be > 0")
        if self.protocol.start_delay < 0:
            raise ConfigurationError("start_delay must be >= 0")
        if not 0 <= self.protocol.network_fee_bps < MAX_NETWORK_FEE_BPS:
            raise ConfigurationError(f"network_fee_bps must be in [0, {MAX_NETWORK_FEE_BPS})")
        if self.protocol.reward_bps < 0 or self.protocol.rebate_bps < 0:
            raise ConfigurationError("reward_bps and rebate_bps must be >= 0")
        if self.protocol.reward_bps + self.protocol.rebate_bps > BPS:
            raise ConfigurationError("reward_bps + rebate_bps must not exceed BPS")
        if self.run.num_runs < 1:
            raise ConfigurationError("num_runs must be >= 1")
        if self.run.step_seconds < 1:
            raise ConfigurationError("step_seconds must be >= 1")
        if self.run.mode not in RUN_MODES:
            raise ConfigurationError(f"Invalid mode: {self.run.mode}")
        if not 0.0 <= self.run.early_phase_ratio <= 1.0:
            raise ConfigurationError("early_phase_ratio must be in [0, 1]")
        if not 0.0 <= self.run.invalid_ratio <= 1.0:
            raise ConfigurationError("invalid_ratio must be in [0, 1]")
        if self.run.report_every_epochs < 1:
            raise ConfigurationError("report_every_epochs must be >= 1")
        if self.stakers.count < 2:
            raise ConfigurationError("stakers.count must be >= 2")
        if self.stakers.initial_tokens < 1:
            raise ConfigurationError("stakers.initial_tokens must be >= 1")
        if self.logging.level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "protocol": {
                "genesis_time": self.protocol.genesis_time,
                "start_delay": self.protocol.start_delay,
                "epoch_period": self.protocol.epoch_period,
                "min_campaign_duration": self.protocol.min_campaign_duration,
                "network_fee_bps": self.protocol.network_fee_bps,
                "reward_bps": self.protocol.reward_bps,
                "rebate_bps": self.protocol.rebate_bps,
            },
            "run": {
                "num_runs": self.run.num_runs,
                "seed": self.run.seed,
                "step_seconds": self.run.step_seconds,
                "early_phase_ratio": self.run.early_phase_ratio,
                "report_every_epochs": self.run.report_every_epochs,
                "mode": self.run.mode,
                "invalid_ratio": self.run.invalid_ratio,
            },
            "stakers": {
                "count": self.stakers.count,
                "initial_tokens": self.stakers.initial_tokens,
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file,
                "file_output": self.logging.file_output,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> FuzzConfig:
    """
    Load fuzz configuration.

    Resolution order:
        1. Explicit *path* argument
        2. DAOFUZZ_CONFIG env var
        3. ./daofuzz.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("DAOFUZZ_CONFIG", "daofuzz.toml")

    return FuzzConfig.from_file(path)
