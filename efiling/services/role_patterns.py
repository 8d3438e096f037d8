"""
Role-code glob matching shared by routing and SLA lookup.

Both "who may receive a file" and "how long they have" are decided by the
same SLA matrix patterns, so they must be matched by the same code:

    role_pattern_matches("WAT_XEN_SAF", "WAT_*")  -> True
    role_pattern_matches("SEW_XEN", "WAT_*")      -> False
    role_pattern_matches("ANY", "*")              -> True
    role_pattern_matches("ANY", "")               -> True

Matching is case-insensitive; ``*`` matches any run of characters
(including none); every other character is literal.
"""

import functools
import re


def normalise_role_code(code: str | None) -> str:
    """Upper-case and strip a role code; None becomes ''."""
    return (code or "").strip().upper()


@functools.lru_cache(maxsize=512)
def compile_role_pattern(pattern: str) -> re.Pattern:
    """Compile a normalised glob into an anchored regex.

    Regex metacharacters in the pattern are escaped; only ``*`` is special.
    """
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{body}$")


def is_wildcard(pattern: str | None) -> bool:
    """True when the pattern matches every role code."""
    return normalise_role_code(pattern) in ("", "*")


def role_pattern_matches(role_code: str | None, pattern: str | None) -> bool:
    """Return True if ``role_code`` matches the glob ``pattern``."""
    candidate = normalise_role_code(role_code)
    raw = normalise_role_code(pattern)

    if raw in ("", "*"):
        return True
    if "*" not in raw:
        return candidate == raw
    return compile_role_pattern(raw).match(candidate) is not None
