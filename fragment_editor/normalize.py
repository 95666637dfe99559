"""
Text normalization for comparison.

normalize() produces a comparison key only; stored document text is never
rewritten with it. normalize_with_map() additionally returns, for every
character of the key, the index of the source character it came from, so a
match found in normalized space can be projected back onto the original text.
"""
from __future__ import annotations
from typing import List, Tuple
import re

CANONICAL_APOSTROPHE = "'"
CANONICAL_HYPHEN = "-"

APOSTROPHE_LIKE = frozenset([
    "'", "`", "´",                          # typewriter, back-tick, acute accent
    "‘", "’", "‚", "‛",      # curly single quotes
    "′", "＇",                          # prime, fullwidth apostrophe
    "̀", "́",                          # combining grave/acute used as substitutes
    "ʹ", "ʻ", "ʼ", "ʽ", "ˈ",  # modifier letters
])

DASH_LIKE = frozenset([
    "-", "‐", "‑", "‒", "–", "—", "―",
    "−", "﹘", "﹣", "－",
])


def _canonical(ch: str) -> str:
    if ch in APOSTROPHE_LIKE:
        return CANONICAL_APOSTROPHE
    if ch in DASH_LIKE:
        return CANONICAL_HYPHEN
    return ch


def normalize_with_map(text: str) -> Tuple[str, List[int]]:
    """
    Normalize text and keep a position map.

    Returns (normalized, index_map) where index_map[i] is the offset in `text`
    of the character that produced normalized[i].
    """
    out: List[str] = []
    index_map: List[int] = []
    for i, raw in enumerate(text or ""):
        ch = _canonical(raw)
        if ch.isspace():
            # collapse runs and trim the leading edge
            if out and out[-1] != " ":
                out.append(" ")
                index_map.append(i)
            continue
        for c in ch.lower():
            c = _canonical(c)
            if c.isalnum() or c in (CANONICAL_APOSTROPHE, CANONICAL_HYPHEN):
                out.append(c)
                index_map.append(i)
    if out and out[-1] == " ":
        out.pop()
        index_map.pop()
    return "".join(out), index_map


def normalize(text: str) -> str:
    return normalize_with_map(text)[0]


def contains(text: str, fragment: str) -> bool:
    """Normalized containment; an empty normalized fragment never matches."""
    nf = normalize(fragment)
    return bool(nf) and nf in normalize(text)


def find_spans(text: str, fragment: str) -> List[Tuple[int, int]]:
    """
    Locate non-overlapping occurrences of fragment in text.

    Verbatim occurrences win. Only when the fragment is absent verbatim is the
    normalized match projected back to (start, end) offsets of `text`.
    """
    if not fragment:
        return []
    if fragment in text:
        return [(m.start(), m.end()) for m in re.finditer(re.escape(fragment), text)]

    nf = normalize(fragment)
    if not nf:
        return []
    nt, index_map = normalize_with_map(text)
    spans: List[Tuple[int, int]] = []
    pos = nt.find(nf)
    while pos != -1:
        spans.append((index_map[pos], index_map[pos + len(nf) - 1] + 1))
        pos = nt.find(nf, pos + len(nf))
    return spans


def first_position(text: str, fragment: str) -> int:
    spans = find_spans(text, fragment)
    return spans[0][0] if spans else -1


def replace_all(text: str, fragment: str, replacement: str) -> Tuple[str, int]:
    """
    Replace every occurrence of fragment with replacement.

    The fragment is literal text, never a pattern, and the replacement is
    inserted verbatim. Returns (new_text, count).
    """
    spans = find_spans(text, fragment)
    if not spans:
        return text, 0
    # splice right-to-left so earlier offsets stay valid
    for start, end in reversed(spans):
        text = text[:start] + replacement + text[end:]
    return text, len(spans)
