"""CLI package for imglocal.

Usage:
    from imglocal.cli import app
    from imglocal.cli import ui
"""

from __future__ import annotations

from imglocal.cli import ui
from imglocal.cli.main import app

__all__ = [
    "app",
    "ui",
]
