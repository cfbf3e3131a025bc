# utils/strings.py
from __future__ import annotations

import re
import unicodedata

_non_alnum_re = re.compile(r"[^a-z0-9]+")
_multi_hyphen_re = re.compile(r"-{2,}")


def sanitize_slug(s: str) -> str:
    """
    URL-safe slug for archive and content file names.
      - Unicode normalize + strip accents
      - Lowercase
      - Any run of non [a-z0-9] becomes "-"
      - Collapse repeated "-" and trim from ends

    "Intro to Biology" -> "intro-to-biology"
    """
    if not s:
        return ""
    ascii_s = unicodedata.normalize("NFKD", s).encode("ascii", "ignore").decode("ascii")
    slug = _non_alnum_re.sub("-", ascii_s.lower())
    return _multi_hyphen_re.sub("-", slug).strip("-")


def truncate_text(text: str, max_length: int, ellipsis: str = "...") -> str:
    """
    Cut text down to max_length characters (ellipsis included).
    Prefers breaking on the last word boundary ("-" or whitespace) so slugs
    don't end mid-word; falls back to a hard cut when there is none.
    """
    if text is None:
        return ""
    if len(text) <= max_length:
        return text
    room = max(max_length - len(ellipsis), 0)
    cut = text[:room]
    boundary = max(cut.rfind("-"), cut.rfind(" "))
    if boundary > 0:
        cut = cut[:boundary]
    return cut.rstrip("- ") + ellipsis
