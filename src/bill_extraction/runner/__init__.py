"""
CLI runner module.

Provides commands:
- parse: Extract bill details from a PDF file
- strategies: List configured extractors
- init-config: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
