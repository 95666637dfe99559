"""
Matching Engine

Resolves each fixed directive against the element index:

  EXACT  every element whose normalized text contains the normalized fragment
  AI     only when a directive has no EXACT hit anywhere and a semantic
         backend is configured; the ranker picks one of a few local candidates

Matches are grouped by element original_index. Within a group EXACT matches
are ordered by where their fragment first occurs in the element text, then
at most one AI match follows.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING
import logging

from fragment_editor.ir import DocumentElement, FixedDirective, MatchCandidate
from fragment_editor.normalize import contains, first_position

if TYPE_CHECKING:
    from fragment_editor.llm.semantic import SemanticMatcher

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    groups: Dict[int, List[MatchCandidate]] = field(default_factory=dict)
    unmatched: List[int] = field(default_factory=list)        # directive indices with no match at all
    skipped_ai: List[MatchCandidate] = field(default_factory=list)

    @property
    def matched_directives(self) -> int:
        seen = {c.directive_index for group in self.groups.values() for c in group}
        seen.update(c.directive_index for c in self.skipped_ai)
        return len(seen)


def exact_matches(directive: FixedDirective, elements: Sequence[DocumentElement]) -> List[MatchCandidate]:
    return [
        MatchCandidate(
            element=el,
            similarity=1.0,
            match_type="EXACT",
            directive_index=directive.directive_index,
            fragment=directive.fragment,
            replace_with=directive.replace_with,
        )
        for el in elements
        if contains(el.text, directive.fragment)
    ]


def ai_match(
    directive: FixedDirective,
    elements: Sequence[DocumentElement],
    semantic: "SemanticMatcher",
    max_candidates: int = 3,
    floor: Optional[float] = None,
) -> Optional[MatchCandidate]:
    candidates = semantic.rank_candidates(
        directive.fragment,
        elements,
        max_candidates,
        directive_index=directive.directive_index,
        replace_with=directive.replace_with,
        floor=floor,
    )
    if not candidates:
        logger.debug(f"Directive {directive.directive_index}: no semantic candidates above floor")
        return None

    choice = semantic.resolve(directive.fragment, [c.matched_text or c.element.text for c in candidates])
    if choice is None:
        logger.debug(f"Directive {directive.directive_index}: ranker reported not found")
        return None
    if not 0 <= choice < len(candidates):
        logger.warning(f"Directive {directive.directive_index}: ranker returned out-of-range index {choice}")
        return None
    return candidates[choice]


def _order_group(group: List[MatchCandidate], skipped_ai: List[MatchCandidate]) -> List[MatchCandidate]:
    exact = [c for c in group if c.match_type == "EXACT"]
    exact.sort(key=lambda c: (first_position(c.element.text, c.fragment), c.directive_index))

    ai = sorted((c for c in group if c.match_type == "AI"), key=lambda c: c.directive_index)
    for extra in ai[1:]:
        logger.warning(
            f"Element {extra.element.original_index}: skipping additional AI match "
            f"from directive {extra.directive_index}"
        )
        skipped_ai.append(extra)
    return exact + ai[:1]


def match_directives(
    fixed: Sequence[FixedDirective],
    elements: Sequence[DocumentElement],
    semantic: Optional["SemanticMatcher"] = None,
    max_candidates: int = 3,
    ai_threshold: Optional[float] = None,
) -> MatchResult:
    """Match every directive against the element set; deterministic for a given input."""
    result = MatchResult()
    by_element: Dict[int, List[MatchCandidate]] = {}
    use_ai = semantic is not None and semantic.available

    for d in fixed:
        hits = exact_matches(d, elements)
        if not hits and use_ai and semantic is not None:
            hit = ai_match(d, elements, semantic, max_candidates, ai_threshold)
            hits = [hit] if hit is not None else []
        if not hits:
            logger.info(f"No match for directive {d.directive_index}: {d.original_fragment[:60]!r}")
            result.unmatched.append(d.directive_index)
            continue
        logger.debug(f"Directive {d.directive_index}: {len(hits)} {hits[0].match_type} match(es)")
        for c in hits:
            by_element.setdefault(c.element.original_index, []).append(c)

    for idx in sorted(by_element):
        result.groups[idx] = _order_group(by_element[idx], result.skipped_ai)

    logger.info(
        f"Matching: {len(fixed)} directives, {len(result.groups)} elements hit, "
        f"{len(result.unmatched)} unmatched"
    )
    return result
