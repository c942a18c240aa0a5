"""
CLI module for soltrace commands.

This module provides the command-line interface for soltrace:
call, format and signatures.
"""

from .main import main

__all__ = [
    'main',
]
