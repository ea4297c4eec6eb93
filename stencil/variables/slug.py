"""Project identifier normalization."""

from __future__ import annotations

import re

_UNDERSCORE_RUN = re.compile(r"_+")


def sanitize_slug(text: str) -> str:
    """Normalize text into a Python-importable identifier.

    Lowercases ASCII letters, maps every other character to ``_``, collapses
    underscore runs and strips them from both ends. A leading digit is
    prefixed with ``_``.
    """
    chars = []
    for ch in text:
        lowered = ch.lower() if ch.isascii() else ch
        if ("a" <= lowered <= "z") or ("0" <= lowered <= "9"):
            chars.append(lowered)
        else:
            chars.append("_")
    slug = _UNDERSCORE_RUN.sub("_", "".join(chars)).strip("_")
    if slug[:1].isdigit():
        slug = f"_{slug}"
    return slug
