"""Stencil - parameterized project tree materializer.

Renders a Jinja2 template tree into a concrete project tree without ever
writing outside the chosen output root.
"""

__version__ = "0.1.0"

# Configure logging for library use
import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Re-export main CLI entry point
from .cli import main

__all__ = ["main"]
