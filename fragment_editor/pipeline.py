"""
Fragment Editor

Session facade over one document: preview a batch of directives, apply the
approved suggestions, undo the last apply, poll progress.

  idle -> previewing -> awaiting_approval -> applying -> applied
  applied -> undoing -> idle

Each editor owns its bounded state (ranking cache, operation log, progress)
and attaches its operation log to the package logger while open.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Union
import logging
import time

from fragment_editor.adapters.base import DocumentAdapter
from fragment_editor.apply import ApplyResult, UndoResult, apply_suggestions, undo_last_run
from fragment_editor.config import EditorConfig
from fragment_editor.editops import Suggestion
from fragment_editor.errors import InvalidStateError
from fragment_editor.fixer import directive_problem, fix_directives
from fragment_editor.index import index_document
from fragment_editor.ir import Directive, FixedDirective, MatchCandidate
from fragment_editor.llm.client import ClaudeRanker, LLMConfig
from fragment_editor.llm.retry import RetryPolicy
from fragment_editor.llm.semantic import Ranker, SemanticMatcher
from fragment_editor.matching import match_directives
from fragment_editor.rules.load_directives import parse_directives
from fragment_editor.state import BoundedCache, OperationLog, Progress, ProgressTracker
from fragment_editor.store import KeyValueStore, MemoryStore
from fragment_editor.suggestions import build_suggestions

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "fragment_editor"

EditorState = Literal["idle", "previewing", "awaiting_approval", "applying", "applied", "undoing"]

# operation -> states it may start from
ALLOWED_FROM: Dict[str, set] = {
    "preview": {"idle", "awaiting_approval", "applied"},
    "approve": {"idle", "awaiting_approval", "applied"},
    "apply": {"awaiting_approval"},
    "undo": {"idle", "awaiting_approval", "applied"},
}


@dataclass
class PreviewResult:
    suggestions: List[Suggestion] = field(default_factory=list)
    fixed: List[FixedDirective] = field(default_factory=list)
    unmatched: List[int] = field(default_factory=list)           # directive indices
    skipped_directives: List[str] = field(default_factory=list)  # input errors, one line each
    skipped_ai: List[MatchCandidate] = field(default_factory=list)
    total_directives: int = 0

    @property
    def summary(self) -> str:
        s = (
            f"{len(self.suggestions)} suggestions from {self.total_directives} directives; "
            f"{len(self.unmatched)} unmatched, {len(self.skipped_directives)} skipped"
        )
        if self.skipped_ai:
            s += f", {len(self.skipped_ai)} AI match(es) dropped"
        return s

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "total_directives": self.total_directives,
            "suggestions": [s.to_dict() for s in self.suggestions],
            "unmatched": list(self.unmatched),
            "skipped_directives": list(self.skipped_directives),
            "skipped_ai": [
                {"para_index": c.element.original_index, "directive_index": c.directive_index, "fragment": c.fragment}
                for c in self.skipped_ai
            ],
            "fixed": [
                {"directive_index": f.directive_index, "original_fragment": f.original_fragment,
                 "fragment": f.fragment, "fix_type": list(f.fix_type)}
                for f in self.fixed if f.was_fixed
            ],
        }


DirectiveInput = Union[Directive, Dict[str, Any]]


def _as_directives(directives: Sequence[DirectiveInput]) -> List[Directive]:
    out: List[Directive] = []
    for d in directives:
        if isinstance(d, Directive):
            out.append(d)
        else:
            out.extend(parse_directives([d]))
    return out


def _threshold(settings: Optional[Dict[str, Any]], default: float) -> float:
    if not settings:
        return default
    value = settings.get("aiThreshold", settings.get("ai_threshold"))
    return default if value is None else float(value)


class FragmentEditor:
    def __init__(
        self,
        document: DocumentAdapter,
        store: Optional[KeyValueStore] = None,
        config: Optional[EditorConfig] = None,
        ranker: Optional[Ranker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.document = document
        self.config = config or EditorConfig()
        self.store = store if store is not None else MemoryStore()
        self.state: EditorState = "idle"
        self.suggestions: List[Suggestion] = []

        self.cache: BoundedCache = BoundedCache(self.config.cache_size)
        self.progress = ProgressTracker(self.store)
        self.log = OperationLog(self.config.log_capacity)

        if ranker is None and self.config.use_ai:
            if self.config.api_key:
                ranker = ClaudeRanker(LLMConfig(
                    api_key=self.config.api_key,
                    model=self.config.model,
                    max_tokens=self.config.max_output_tokens,
                ))
            else:
                logger.warning("AI matching requested but ANTHROPIC_API_KEY is not set; using EXACT matching only")
        self.semantic = SemanticMatcher(
            ranker=ranker,
            cache=self.cache,
            policy=RetryPolicy(max_attempts=self.config.max_retries, base_delay=self.config.base_delay),
            floor=self.config.ai_threshold,
            stage1_keep=self.config.stage1_keep,
            chunk_chars=self.config.chunk_chars,
            token_budget=self.config.token_budget,
            sleep=sleep,
        )

        pkg = logging.getLogger(PACKAGE_LOGGER)
        if not pkg.isEnabledFor(logging.INFO):
            pkg.setLevel(logging.INFO)
        pkg.addHandler(self.log)

    def close(self) -> None:
        logging.getLogger(PACKAGE_LOGGER).removeHandler(self.log)

    def __enter__(self) -> "FragmentEditor":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _enter(self, operation: str, state: EditorState) -> EditorState:
        if self.state not in ALLOWED_FROM[operation]:
            raise InvalidStateError(f"Cannot {operation} while {self.state}")
        previous = self.state
        self.state = state
        return previous

    def generate_preview(
        self,
        directives: Sequence[DirectiveInput],
        settings: Optional[Dict[str, Any]] = None,
    ) -> PreviewResult:
        previous = self._enter("preview", "previewing")
        try:
            result = self._preview(_as_directives(directives), _threshold(settings, self.config.ai_threshold))
        except Exception:
            self.state = previous
            raise
        self.suggestions = list(result.suggestions)
        self.state = "awaiting_approval"
        return result

    def _preview(self, directives: List[Directive], ai_threshold: float) -> PreviewResult:
        result = PreviewResult(total_directives=len(directives))
        for i, d in enumerate(directives):
            problem = directive_problem(d)
            if problem:
                result.skipped_directives.append(f"Directive {i}: {problem}")

        elements = index_document(self.document)
        assist = self.semantic.suggest_fragment if self.semantic.available else None
        result.fixed = fix_directives(directives, elements, assist)

        matched = match_directives(
            result.fixed,
            elements,
            semantic=self.semantic,
            max_candidates=self.config.max_candidates,
            ai_threshold=ai_threshold,
        )
        result.unmatched = matched.unmatched
        result.skipped_ai = matched.skipped_ai
        result.suggestions = build_suggestions(matched.groups, result.skipped_ai)
        logger.info(f"Preview: {result.summary}")
        return result

    def approve(self, suggestions: Sequence[Suggestion]) -> None:
        """Stage a saved or edited suggestion set for apply."""
        self._enter("approve", "awaiting_approval")
        self.suggestions = list(suggestions)

    def apply_suggestions(self, suggestions: Optional[Sequence[Suggestion]] = None) -> ApplyResult:
        previous = self._enter("apply", "applying")
        approved = list(self.suggestions if suggestions is None else suggestions)
        try:
            result = apply_suggestions(self.document, approved, self.store, self.progress)
        except Exception:
            self.state = previous
            raise
        self.state = "applied"
        return result

    def undo_last_run(self) -> UndoResult:
        previous = self._enter("undo", "undoing")
        try:
            result = undo_last_run(self.document, self.store)
        except Exception:
            self.state = previous
            raise
        self.state = "idle" if not result.nothing_to_undo else previous
        return result

    def get_progress(self) -> Progress:
        return self.progress.snapshot()
