"""Path validation for every write under an output root."""

from .paths import PathSafetyGuard, is_safe_path_segment, is_safe_rel_path

__all__ = ["PathSafetyGuard", "is_safe_path_segment", "is_safe_rel_path"]
