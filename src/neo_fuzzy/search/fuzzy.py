"""Scoring and matching primitives used by the index.

Every candidate is scored against the full query on each keystroke instead of narrowing
the previous result set. This keeps the index trivial at the cost of O(n*m) work per
candidate; revisit it for corpora much larger than a project tree.
"""

import re
from functools import lru_cache


def levenshtein(a: str, b: str) -> int:
    """
    Edit distance between two strings.

    Uses a single rolling row instead of the full matrix, so memory is O(len(a)).
    """
    if a == b:
        return 0

    if not a:
        return len(b)
    if not b:
        return len(a)

    cache = list(range(1, len(a) + 1))
    result = 0

    for index_b, code_b in enumerate(b):
        result = index_b + 1
        distance_a = index_b

        for index_a, code_a in enumerate(a):
            distance_b = distance_a if code_a == code_b else distance_a + 1
            distance_a = cache[index_a]

            if distance_a > result:
                result = result + 1 if distance_b > result else distance_b
            else:
                result = distance_a + 1 if distance_b > distance_a else distance_b

            cache[index_a] = result

    return result


def fuzzy_score(query: str, candidate: str) -> int:
    """Rank of a candidate for a query, lower is better. An empty query ranks everything equally."""
    if not query:
        return 0
    return levenshtein(query, candidate)


def smart_case_pattern(query: str) -> str:
    """
    Build a regex matching candidates that contain the query characters in order.

    Lowercase letters match either case, everything else matches literally.
    """
    parts = []
    for char in query:
        upper = char.upper()
        if char.islower() and len(upper) == 1:
            parts.append(f"[{re.escape(upper)}{re.escape(char)}]")
        else:
            parts.append(re.escape(char))
    return ".*".join(parts)


@lru_cache(maxsize=64)
def compile_pattern(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def regexp(pattern: str, value: str | None) -> bool:
    """SQLite REGEXP implementation: ``value REGEXP pattern`` calls ``regexp(pattern, value)``."""
    if value is None:
        return False
    return compile_pattern(pattern).search(value) is not None
