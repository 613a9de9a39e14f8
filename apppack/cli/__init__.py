"""
CLI integration for apppack.

Provides the command-line interface:
- pack.py: Main CLI entry point
"""

from __future__ import annotations

from .pack import PackCLI, create_cli, main

__all__ = [
    "PackCLI",
    "create_cli",
    "main",
]
