"""Command-line interface for into-md.

Usage:
    from intomd.cli import main
"""

from __future__ import annotations

from intomd.cli.main import app, main

__all__ = ["app", "main"]
