"""
Wildcard pattern matching for rasp rules.

Every rule category uses the same pattern syntax: '*' matches any run
of characters (including none and including newlines); every other
character matches itself. Matching is anchored to the whole subject and
is case-sensitive.

Examples:
    matches("/tmp/x", "*/tmp/*")      -> True
    matches("/etc/x", "*/tmp/*")      -> False
    matches("api.github.com:443", "*.github.com:*") -> True
"""

import re
from functools import lru_cache

from rasp.errors import InvalidPatternError

WILDCARD = "*"


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """
    Compile a wildcard pattern into an anchored regular expression.

    Each literal segment between wildcards is escaped, so regex
    metacharacters in a pattern ('.', '?', '[', ...) are matched
    literally. Consecutive wildcards collapse to a single one.

    Raises:
        InvalidPatternError: If the pattern is not a string or contains NUL
    """
    if not isinstance(pattern, str):
        raise InvalidPatternError(pattern=pattern, reason="pattern must be a string")
    if "\x00" in pattern:
        raise InvalidPatternError(pattern=pattern, reason="pattern contains a NUL character")
    return _compile(pattern)


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> re.Pattern[str]:
    collapsed = re.sub(r"\*{2,}", WILDCARD, pattern)
    segments = [re.escape(segment) for segment in collapsed.split(WILDCARD)]
    try:
        return re.compile(".*".join(segments), re.DOTALL)
    except re.error as e:
        raise InvalidPatternError(pattern=pattern, reason=str(e)) from e


def matches(subject: str, pattern: str) -> bool:
    """Return True if the whole subject matches the wildcard pattern."""
    return compile_pattern(pattern).fullmatch(subject) is not None


def matches_any(subject: str, patterns: tuple[str, ...] | list[str]) -> bool:
    """Return True if any of the patterns matches the subject."""
    return any(matches(subject, pattern) for pattern in patterns)
