"""
Fragment Fixer

Repairs directive search fragments so they line up with the typography the
document actually uses (dash style, quote style, whitespace, apostrophes).
Repairs are applied in a fixed order, cumulatively; each one is recorded in
fix_type only if it changed the fragment.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
import logging
import re

from fragment_editor.ir import Directive, DocumentElement, FixedDirective
from fragment_editor.normalize import APOSTROPHE_LIKE, normalize

logger = logging.getLogger(__name__)

# assist(fragment, elements) -> replacement fragment or None
FragmentAssist = Callable[[str, Sequence[DocumentElement]], Optional[str]]

_SPACE_VARIANTS = re.compile(r"[     　]")
_LONE_HYPHEN = re.compile(r"(^|[ \t]+)-([ \t]+|$)", re.MULTILINE)
_DOUBLE_QUOTED = re.compile(r"[\"“”„]([^\"“”„]+)[\"“”„]")
_APOSTROPHES = "".join(sorted(c for c in APOSTROPHE_LIKE if not ("̀" <= c <= "ͯ")))


@dataclass
class DocumentTypography:
    """Typographic conventions observed in the document."""
    dash: str = " — "
    quotes: Optional[Tuple[str, str]] = ("«", "»")
    apostrophe: str = "'"

    @classmethod
    def detect(cls, texts: Sequence[str]) -> "DocumentTypography":
        joined = "\n".join(texts)
        if " — " in joined:
            dash = " — "
        elif " – " in joined:
            dash = " – "
        elif "—" in joined:
            dash = "—"
        else:
            dash = " — "

        quotes: Optional[Tuple[str, str]] = None
        if "«" in joined:
            quotes = ("« ", " »") if "« " in joined else ("«", "»")
        elif "“" in joined:
            quotes = ("“", "”")

        apostrophe = "’" if joined.count("’") > joined.count("'") else "'"
        return cls(dash=dash, quotes=quotes, apostrophe=apostrophe)


def repair_dashes(fragment: str, style: DocumentTypography) -> str:
    dash = style.dash.strip()
    spaced = style.dash != dash

    def _sub(m: re.Match) -> str:
        left = " " if spaced and m.group(1) else ""
        right = " " if spaced and m.group(2) else ""
        return left + dash + right

    return _LONE_HYPHEN.sub(_sub, fragment)


def repair_quotes(fragment: str, style: DocumentTypography) -> str:
    if style.quotes is None:
        return fragment
    open_q, close_q = style.quotes
    return _DOUBLE_QUOTED.sub(lambda m: open_q + m.group(1).strip() + close_q, fragment)


def repair_whitespace(fragment: str, style: DocumentTypography) -> str:
    fragment = _SPACE_VARIANTS.sub(" ", fragment)
    fragment = re.sub(r"[ \t]{2,}", " ", fragment)
    return fragment.strip()


def repair_apostrophes(fragment: str, style: DocumentTypography) -> str:
    return re.sub(f"[{re.escape(_APOSTROPHES)}]", style.apostrophe, fragment)


REPAIRS: List[Tuple[str, Callable[[str, DocumentTypography], str]]] = [
    ("dash", repair_dashes),
    ("quote", repair_quotes),
    ("whitespace", repair_whitespace),
    ("apostrophe", repair_apostrophes),
]


def directive_problem(directive: Directive) -> Optional[str]:
    """Why a directive cannot be processed, or None if it is usable."""
    if not directive.fragment:
        return "empty fragment"
    if not directive.replace_with:
        return "empty replacement"
    if not normalize(directive.fragment):
        return "fragment has no comparable text"
    return None


def _raw_match(fragment: str, elements: Sequence[DocumentElement]) -> bool:
    return any(fragment in el.text for el in elements)


def _normalized_match(fragment: str, elements: Sequence[DocumentElement]) -> bool:
    nf = normalize(fragment)
    return bool(nf) and any(nf in normalize(el.text) for el in elements)


def fix_directive(
    directive: Directive,
    index: int,
    elements: Sequence[DocumentElement],
    style: DocumentTypography,
    assist: Optional[FragmentAssist] = None,
) -> FixedDirective:
    passthrough = FixedDirective(
        fragment=directive.fragment,
        replace_with=directive.replace_with,
        original_fragment=directive.fragment,
        directive_index=index,
    )
    if _normalized_match(directive.fragment, elements):
        return passthrough

    fragment = directive.fragment
    fix_type: List[str] = []
    for name, repair in REPAIRS:
        repaired = repair(fragment, style)
        if repaired != fragment:
            fix_type.append(name)
            fragment = repaired

    if fix_type and (_raw_match(fragment, elements) or _normalized_match(fragment, elements)):
        logger.debug(f"Directive {index}: fixed via {'+'.join(fix_type)}")
        return FixedDirective(
            fragment=fragment,
            replace_with=directive.replace_with,
            original_fragment=directive.fragment,
            directive_index=index,
            was_fixed=True,
            fix_type=fix_type,
        )

    if assist is not None:
        try:
            suggested = assist(directive.fragment, elements)
        except Exception as e:
            logger.warning(f"Directive {index}: fragment assist failed: {type(e).__name__}: {e}")
            suggested = None
        if suggested and _raw_match(suggested, elements):
            logger.debug(f"Directive {index}: fragment replaced by assist")
            return FixedDirective(
                fragment=suggested,
                replace_with=directive.replace_with,
                original_fragment=directive.fragment,
                directive_index=index,
                was_fixed=True,
                fix_type=fix_type + ["semantic"],
            )

    logger.debug(f"Directive {index}: no fix found")
    return passthrough


def fix_directives(
    directives: Sequence[Directive],
    elements: Sequence[DocumentElement],
    assist: Optional[FragmentAssist] = None,
) -> List[FixedDirective]:
    """
    Pre-process a batch of directives against the document.

    Directives with an empty fragment or replacement are dropped here and
    never reach matching. Output keeps the batch order; directive_index refers
    to the position in `directives`.
    """
    style = DocumentTypography.detect([el.text for el in elements])
    fixed: List[FixedDirective] = []
    for i, d in enumerate(directives):
        problem = directive_problem(d)
        if problem:
            logger.info(f"Skipping directive {i}: {problem}")
            continue
        fixed.append(fix_directive(d, i, elements, style, assist))
    n_fixed = sum(1 for f in fixed if f.was_fixed)
    logger.info(f"Fragment fixer: {len(fixed)} directives usable, {n_fixed} repaired")
    return fixed
