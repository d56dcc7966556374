"""
daofuzz Constants

This module consolidates the protocol constants shared by the reference model,
the emulator and the action generator, plus the environment-driven logger
settings. Constants are organized by category for easy reference.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW MIRROR THE AUTHORITATIVE CONTRACTS. CHANGING THEM MAKES THE
# REFERENCE MODEL DISAGREE WITH ANY REAL DEPLOYMENT AND EVERY RUN WILL DIVERGE.

# ==================================================================================
# FIXED POINT
# ==================================================================================
PRECISION = 10 ** 18
BPS = 10000  # Basis points denominator
POWER_128 = 2 ** 128


# ==================================================================================
# CAMPAIGN LIMITS
# ==================================================================================
MAX_CAMPAIGN_OPTIONS = 8
MIN_CAMPAIGN_OPTIONS = 2
MAX_EPOCH_CAMPAIGNS = 10

# Network fee options must stay strictly below half of BPS
MAX_NETWORK_FEE_BPS = BPS // 2


# ==================================================================================
# ADDRESSES
# ==================================================================================
ZERO_ADDRESS = "0x" + "00" * 20


# ==================================================================================
# RUN DEFAULTS
# ==================================================================================
DEFAULT_EPOCH_PERIOD = 500  # seconds
DEFAULT_STEP_SECONDS = 10
DEFAULT_NUM_RUNS = 10000
DEFAULT_EARLY_PHASE_RATIO = 0.003
DEFAULT_REPORT_EVERY_EPOCHS = 5
DEFAULT_STAKER_COUNT = 10
DEFAULT_STAKER_BALANCE = 10_000 * PRECISION
DEFAULT_NETWORK_FEE_BPS = 25
DEFAULT_REWARD_BPS = 3000
DEFAULT_REBATE_BPS = 2000


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Only calls ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
