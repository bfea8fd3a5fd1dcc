from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[\s\-]+")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_WHITESPACE = re.compile(r"\s+")


def normalize_plate(raw: str | None) -> str:
    """Matching key for a plate: upper-case, alphanumerics only."""
    if not raw:
        return ""
    value = _SEPARATORS.sub("", raw.strip().upper())
    return _NON_ALNUM.sub("", value)


def display_plate(raw: str | None) -> str:
    if not raw:
        return ""
    return _WHITESPACE.sub(" ", raw.strip().upper())


def _levenshtein(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j - 1] + cost, previous[j] + 1, current[j - 1] + 1))
        previous = current
    return previous[-1]


def plates_probably_same(a: str, b: str, threshold: int = 2) -> bool:
    """Tolerates small OCR typos between two plate readings."""
    norm_a = normalize_plate(a)
    norm_b = normalize_plate(b)
    if norm_a == norm_b:
        return True
    if not norm_a or not norm_b:
        return False
    return _levenshtein(norm_a, norm_b) <= threshold
