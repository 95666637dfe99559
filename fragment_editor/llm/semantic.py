"""
Semantic Matcher

Two-stage narrowing of the document to a handful of candidate passages,
followed by a single ranking call to the external backend:

  Stage 1  score every element against the fragment (word overlap, long-word
           overlap, length ratio) and keep the best few above a floor
  Stage 2  split the survivors into sentence-bounded chunks, re-score each
           chunk, keep the global top N by a blended score

The ranking call is bounded by a RetryPolicy and memoized in a BoundedCache.
Any backend failure resolves to "not found" for that fragment.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple
import logging
import re
import time

from fragment_editor.ir import DocumentElement, MatchCandidate
from fragment_editor.llm.retry import RetryPolicy, run_with_retry
from fragment_editor.normalize import normalize
from fragment_editor.state import BoundedCache

logger = logging.getLogger(__name__)

WORD_WEIGHT = 0.5
IMPORTANT_WEIGHT = 0.3
LENGTH_WEIGHT = 0.2
IMPORTANT_MIN_LEN = 5

ELEMENT_BLEND = 0.3
CHUNK_BLEND = 0.7

CHARS_PER_TOKEN = 4
PROMPT_OVERHEAD_CHARS = 600
MIN_CANDIDATE_CHARS = 40

ASSIST_MIN_SCORE = 0.9

_SENTENCE_END = re.compile(r"[.!?…;:]+[\"'»”’)]*\s+")


class Ranker(Protocol):
    def rank(self, fragment: str, candidates: List[str]) -> Optional[int]: ...


@dataclass
class ScoredChunk:
    element: DocumentElement
    chunk_index: int
    text: str
    element_score: float
    chunk_score: float

    @property
    def score(self) -> float:
        return ELEMENT_BLEND * self.element_score + CHUNK_BLEND * self.chunk_score


def _words(text: str) -> List[str]:
    return normalize(text).split()


def similarity(fragment: str, text: str) -> float:
    """Composite similarity in [0, 1] between a fragment and a passage."""
    frag_words = set(_words(fragment))
    text_words = set(_words(text))
    if not frag_words or not text_words:
        return 0.0

    overlap = len(frag_words & text_words) / len(frag_words)

    important = {w for w in frag_words if len(w) >= IMPORTANT_MIN_LEN}
    important_overlap = len(important & text_words) / len(important) if important else overlap

    nf, nt = normalize(fragment), normalize(text)
    length_ratio = min(len(nf), len(nt)) / max(len(nf), len(nt))

    return WORD_WEIGHT * overlap + IMPORTANT_WEIGHT * important_overlap + LENGTH_WEIGHT * length_ratio


def chunk_text(text: str, chunk_chars: int = 100) -> List[str]:
    """
    Split text into sentence-bounded chunks of roughly chunk_chars.

    Each chunk is a verbatim substring of `text`. A single sentence longer
    than chunk_chars becomes its own chunk.
    """
    bounds = [0] + [m.end() for m in _SENTENCE_END.finditer(text)] + [len(text)]
    sentences: List[Tuple[int, int]] = [
        (a, b) for a, b in zip(bounds, bounds[1:]) if text[a:b].strip()
    ]

    chunks: List[str] = []
    start: Optional[int] = None
    end = 0
    for a, b in sentences:
        if start is not None and b - start > chunk_chars:
            chunks.append(text[start:end].strip())
            start = None
        if start is None:
            start = a
        end = b
    if start is not None:
        chunks.append(text[start:end].strip())
    return [c for c in chunks if c]


class SemanticMatcher:
    def __init__(
        self,
        ranker: Optional[Ranker] = None,
        cache: Optional[BoundedCache] = None,
        policy: Optional[RetryPolicy] = None,
        floor: float = 0.15,
        stage1_keep: int = 20,
        chunk_chars: int = 100,
        token_budget: int = 2000,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ranker = ranker
        self.cache: BoundedCache = cache if cache is not None else BoundedCache(100)
        self.policy = policy or RetryPolicy()
        self.floor = floor
        self.stage1_keep = stage1_keep
        self.chunk_chars = chunk_chars
        self.token_budget = token_budget
        self.sleep = sleep

    @property
    def available(self) -> bool:
        return self.ranker is not None

    def score_elements(
        self, fragment: str, elements: Sequence[DocumentElement], floor: Optional[float] = None
    ) -> List[Tuple[DocumentElement, float]]:
        """Stage 1: elements at or above the floor, best first."""
        floor = self.floor if floor is None else floor
        scored = []
        for el in elements:
            if not el.text.strip():
                continue
            s = similarity(fragment, el.text)
            if s >= floor:
                scored.append((el, s))
        scored.sort(key=lambda t: (-t[1], t[0].original_index))
        return scored[: self.stage1_keep]

    def score_chunks(
        self,
        fragment: str,
        elements: Sequence[DocumentElement],
        max_candidates: int = 3,
        floor: Optional[float] = None,
    ) -> List[ScoredChunk]:
        """Stage 2: the global top chunks across the Stage-1 survivors."""
        chunks: List[ScoredChunk] = []
        for el, el_score in self.score_elements(fragment, elements, floor):
            for ci, chunk in enumerate(chunk_text(el.text, self.chunk_chars)):
                chunks.append(ScoredChunk(
                    element=el,
                    chunk_index=ci,
                    text=chunk,
                    element_score=el_score,
                    chunk_score=similarity(fragment, chunk),
                ))
        chunks.sort(key=lambda c: (-c.score, c.element.original_index, c.chunk_index))
        return chunks[:max_candidates]

    def rank_candidates(
        self,
        fragment: str,
        elements: Sequence[DocumentElement],
        max_candidates: int = 3,
        directive_index: int = -1,
        replace_with: str = "",
        floor: Optional[float] = None,
    ) -> List[MatchCandidate]:
        return [
            MatchCandidate(
                element=c.element,
                similarity=round(c.score, 4),
                match_type="AI",
                directive_index=directive_index,
                fragment=fragment,
                replace_with=replace_with,
                matched_text=c.text,
            )
            for c in self.score_chunks(fragment, elements, max_candidates, floor)
        ]

    def fit_budget(self, fragment: str, candidate_texts: Sequence[str]) -> List[str]:
        """Truncate candidate texts so the prompt stays within the token budget."""
        budget_chars = self.token_budget * CHARS_PER_TOKEN - PROMPT_OVERHEAD_CHARS - len(fragment)
        total = sum(len(t) for t in candidate_texts)
        if not candidate_texts or total <= budget_chars:
            return list(candidate_texts)
        per = max(MIN_CANDIDATE_CHARS, budget_chars // len(candidate_texts))
        logger.debug(f"Truncating {len(candidate_texts)} candidates to {per} chars each")
        return [t if len(t) <= per else t[: per - 1] + "…" for t in candidate_texts]

    def resolve(self, fragment: str, candidate_texts: Sequence[str]) -> Optional[int]:
        """
        Ask the ranker which candidate holds the fragment.

        Returns the index it names, or None for NOT_FOUND and for any backend
        failure. Range checking is the caller's job.
        """
        if self.ranker is None or not candidate_texts:
            return None

        key = fragment + "\x1f" + "\x1e".join(candidate_texts)
        if key in self.cache:
            logger.debug("Ranking cache hit")
            return self.cache.get(key)

        texts = self.fit_budget(fragment, candidate_texts)
        ranker = self.ranker
        try:
            result = run_with_retry(
                lambda: ranker.rank(fragment, texts),
                self.policy,
                sleep=self.sleep,
                label="Semantic ranking",
            )
        except Exception as e:
            logger.warning(f"Semantic ranking unavailable for fragment {fragment[:40]!r}: {type(e).__name__}")
            return None

        self.cache.set(key, result)
        return result

    def suggest_fragment(self, fragment: str, elements: Sequence[DocumentElement]) -> Optional[str]:
        """Fixer assist: the best local chunk, if it is close enough to stand in for the fragment."""
        best = self.score_chunks(fragment, elements, 1)
        if best and best[0].score >= ASSIST_MIN_SCORE:
            return best[0].text
        return None
