"""
daofuzz Package

Differential fuzzing for an epoch-based staking and campaign-governance
protocol. Core imports are lazily loaded so that importing a submodule does not
pull in the harness and the emulator.
For direct module access, import from submodules:

    from daofuzz.harness import DifferentialHarness
    from daofuzz.protocol import InProcessDao
    from daofuzz.config import load_config
"""

__version__ = "0.3.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'DifferentialHarness':
        from .harness import DifferentialHarness
        return DifferentialHarness
    elif name == 'InProcessDao':
        from .protocol import InProcessDao
        return InProcessDao
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'daofuzz' has no attribute {name!r}")

__all__ = ['DifferentialHarness', 'InProcessDao', 'load_config', '__version__']
