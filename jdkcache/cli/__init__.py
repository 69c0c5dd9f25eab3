"""
jdkcache CLI module.

This module provides the command-line interface for jdkcache.
"""

from .parser import CLI, main

__all__ = ["CLI", "main"]
