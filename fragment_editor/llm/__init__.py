from __future__ import annotations

from fragment_editor.llm.client import ClaudeRanker, LLMConfig, RankingResponseError
from fragment_editor.llm.retry import RetryPolicy, is_retryable_error, run_with_retry
from fragment_editor.llm.semantic import SemanticMatcher

__all__ = [
    "ClaudeRanker",
    "LLMConfig",
    "RankingResponseError",
    "RetryPolicy",
    "SemanticMatcher",
    "is_retryable_error",
    "run_with_retry",
]
