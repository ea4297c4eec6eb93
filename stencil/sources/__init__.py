"""Template acquisition."""

from .loader import open_template

__all__ = ["open_template"]
