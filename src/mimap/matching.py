from __future__ import annotations

from typing import Callable

from Levenshtein import distance

# (pattern, text, max_edits) -> bool
Matcher = Callable[[str, str, int], bool]


def approx_contains(pattern: str, text: str, max_edits: int = 1) -> bool:
    """
    True if some substring of 'text' is within 'max_edits' substitutions,
    insertions or deletions of 'pattern'. Empty sequences never match.
    """
    if not pattern or not text:
        return False
    if pattern in text:
        return True
    if max_edits <= 0:
        return False
    plen = len(pattern)
    tlen = len(text)
    # Text shorter than any window still counts as a whole
    if tlen <= plen + max_edits and distance(pattern, text, score_cutoff=max_edits) <= max_edits:
        return True
    for width in range(max(plen - max_edits, 1), plen + max_edits + 1):
        if width > tlen:
            break
        for start in range(0, tlen - width + 1):
            if distance(pattern, text[start:start + width], score_cutoff=max_edits) <= max_edits:
                return True
    return False


def approx_match_either(
    read_seq: str,
    element_seq: str,
    max_edits: int = 1,
    matcher: Matcher = approx_contains,
) -> bool:
    """Read found in the element, or element found in the read."""
    return matcher(read_seq, element_seq, max_edits) or matcher(element_seq, read_seq, max_edits)
