"""
daofuzz CLI tools.
"""

from .main import cli, main

__all__ = ['cli', 'main']
