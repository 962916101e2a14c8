"""
Similarity Suggester

"Did you mean" lookups for unresolved call names: case-insensitive
Levenshtein distance against the built-in catalog, accepted only within a
small length-scaled threshold so that unrelated names stay silent.
"""

from typing import Iterable, Optional


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def threshold(name: str) -> int:
    return 1 if len(name) <= 4 else 2


def suggest(name: str, catalog: Iterable[str]) -> Optional[str]:
    """
    Return the closest catalog entry to ``name``, or None if nothing is close.

    Ties keep the first minimum in ``catalog`` iteration order.
    """
    limit = threshold(name)
    lowered = name.lower()
    best: Optional[str] = None
    best_dist = limit + 1

    for candidate in catalog:
        # length difference is a lower bound on the distance
        if abs(len(candidate) - len(name)) > limit:
            continue
        dist = levenshtein(lowered, candidate.lower())
        if dist < best_dist:
            best, best_dist = candidate, dist

    return best if best_dist <= limit else None
