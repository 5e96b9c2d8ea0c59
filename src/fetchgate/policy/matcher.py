"""
URL glob patterns.

Patterns are matched against the whole URL string, scheme and query
included. Two wildcards are recognised:

    *   any run of characters without a "/"
    **  any run of characters, "/" included

Every other character is literal and matching is case-sensitive.

Examples:
    https://api.example.com/**        matches https://api.example.com/users/1
    https://api.example.com/*         matches https://api.example.com/users
                                      but not https://api.example.com/users/1
    https://*.example.com/v1/**       matches https://eu.example.com/v1/items
"""

import re
from collections.abc import Callable
from functools import lru_cache

UrlPredicate = Callable[[str], bool]


def _never(url: str) -> bool:
    return False


def translate(pattern: str) -> str:
    """
    Translate a glob pattern into an anchored regular expression.

    Args:
        pattern: The glob pattern

    Returns:
        Regular expression source matching the full string
    """
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".*")
            # A run of three or more stars is still one "**".
            while i < len(pattern) and pattern[i] == "*":
                i += 1
            continue
        if pattern[i] == "*":
            parts.append("[^/]*")
        else:
            parts.append(re.escape(pattern[i]))
        i += 1
    return r"\A" + "".join(parts) + r"\Z"


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> UrlPredicate:
    """
    Compile a glob pattern into a predicate over full URL strings.

    An empty or uncompilable pattern yields a predicate that never
    matches, so a broken policy is unreachable rather than fatal.

    Args:
        pattern: The glob pattern

    Returns:
        Function returning True if a URL matches the pattern
    """
    if not isinstance(pattern, str) or not pattern:
        return _never

    try:
        regex = re.compile(translate(pattern), re.DOTALL)
    except re.error:
        return _never

    def matches(url: str) -> bool:
        return regex.match(url) is not None

    return matches
