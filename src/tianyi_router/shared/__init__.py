"""
Tianyi Router Client - Shared Utilities

This package contains constants and helpers shared by the core and the CLI.
Error helpers live in ``shared.error_handlers``; they are not imported here
because the core imports ``shared.constants`` at load time.
"""

from . import constants

__all__ = ["constants"]
