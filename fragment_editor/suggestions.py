from __future__ import annotations
from typing import Dict, List, Optional
import logging

from fragment_editor.editops import Suggestion
from fragment_editor.ir import MatchCandidate
from fragment_editor.normalize import replace_all

logger = logging.getLogger(__name__)


def exact_composite_text(text: str, candidates: List[MatchCandidate]) -> str:
    """
    Apply EXACT replacements in the given order, each one to every occurrence.

    Substitution is sequential: a later fragment also matches text inserted
    by an earlier replacement, so `cat→dog, dog→cat` turns "cat dog" into
    "cat cat". replacement_count still counts directives, not net changes.
    """
    for c in candidates:
        text, n = replace_all(text, c.fragment, c.replace_with)
        if n == 0:
            logger.debug(
                f"Element {c.element.original_index}: fragment of directive {c.directive_index} "
                f"no longer present after earlier replacements"
            )
    return text


def ai_replacement_text(candidate: MatchCandidate) -> str:
    """The element text with the ranked passage rewritten, or the replacement alone."""
    text = candidate.element.text
    chunk = candidate.matched_text
    if chunk and chunk in text:
        return text.replace(chunk, candidate.replace_with, 1)
    return candidate.replace_with


def _exact_suggestion(exact: List[MatchCandidate]) -> Suggestion:
    el = exact[0].element
    return Suggestion(
        type="EXACT",
        para_index=el.original_index,
        element_id=el.id,
        element_type=el.type_name,
        similarity=1.0,
        old_text=el.text,
        new_text=exact_composite_text(el.text, exact),
        fragments=[c.fragment for c in exact],
        replacements=[c.replace_with for c in exact],
        directive_index=exact[0].directive_index,
        directive_indices=[c.directive_index for c in exact],
    )


def _ai_suggestion(ai: MatchCandidate) -> Suggestion:
    el = ai.element
    return Suggestion(
        type="AI",
        para_index=el.original_index,
        element_id=el.id,
        element_type=el.type_name,
        similarity=ai.similarity,
        old_text=el.text,
        new_text=ai_replacement_text(ai),
        fragments=[ai.fragment],
        replacements=[ai.replace_with],
        directive_index=ai.directive_index,
        directive_indices=[ai.directive_index],
    )


def build_suggestions(
    groups: Dict[int, List[MatchCandidate]],
    skipped_ai: Optional[List[MatchCandidate]] = None,
) -> List[Suggestion]:
    """
    Fold each element's match group into one Suggestion.

    EXACT matches become a single composite; an AI match on an element that
    also has EXACT matches is dropped and appended to `skipped_ai`. Output is
    sorted by ascending para_index.
    """
    suggestions: List[Suggestion] = []
    for idx in sorted(groups):
        group = groups[idx]
        exact = [c for c in group if c.match_type == "EXACT"]
        ai = [c for c in group if c.match_type == "AI"]

        if exact:
            for dropped in ai:
                logger.warning(
                    f"Element {idx}: AI match from directive {dropped.directive_index} "
                    f"skipped, EXACT replacements take precedence"
                )
                if skipped_ai is not None:
                    skipped_ai.append(dropped)
            s = _exact_suggestion(exact)
        elif ai:
            s = _ai_suggestion(ai[0])
        else:
            continue

        if s.new_text == s.old_text:
            logger.info(f"Element {idx}: replacements leave text unchanged, no suggestion")
            continue
        suggestions.append(s)

    suggestions.sort(key=lambda s: s.para_index)
    logger.info(f"Built {len(suggestions)} suggestions from {len(groups)} element groups")
    return suggestions
