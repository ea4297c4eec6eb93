"""Manifest parsing and copy-without-render filtering."""

from .copy_filter import CopyFilter
from .loader import MANIFEST_NAMES, compile_copy_filter, load_manifest

__all__ = ["CopyFilter", "MANIFEST_NAMES", "compile_copy_filter", "load_manifest"]
