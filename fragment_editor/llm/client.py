from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, TYPE_CHECKING
import logging
import re

from fragment_editor.llm.prompts import (
    CANDIDATE_LINE_TEMPLATE,
    NOT_FOUND_TOKEN,
    RANK_SYSTEM_PROMPT,
    RANK_USER_TEMPLATE,
)

if TYPE_CHECKING:
    import anthropic

logger = logging.getLogger(__name__)


class RankingResponseError(ValueError):
    """The ranking backend answered with something that is not an index."""


@dataclass
class LLMConfig:
    """Configuration for the Claude ranking client."""
    api_key: str
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8  # an index or NOT_FOUND
    temperature: float = 0.0


def build_rank_prompt(fragment: str, candidates: Sequence[str]) -> str:
    lines = [CANDIDATE_LINE_TEMPLATE.format(index=i, text=t) for i, t in enumerate(candidates)]
    return RANK_USER_TEMPLATE.format(fragment=fragment, candidates="\n".join(lines))


def parse_rank_response(text: str) -> Optional[int]:
    """Index named by the reply, None for NOT_FOUND; raises on anything else."""
    reply = (text or "").strip()
    if NOT_FOUND_TOKEN in reply.upper().replace(" ", "_"):
        return None
    m = re.search(r"-?\d+", reply)
    if not m:
        raise RankingResponseError(f"Unexpected ranking reply: {reply[:40]!r}")
    return int(m.group(0))


class ClaudeRanker:
    """Thin wrapper around Anthropic's Claude API for candidate ranking."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self._client: Optional["anthropic.Anthropic"] = None

    @property
    def client(self) -> "anthropic.Anthropic":
        """Lazy initialization of Anthropic client."""
        if self._client is None:
            import anthropic
            # retries are owned by the caller's RetryPolicy
            self._client = anthropic.Anthropic(api_key=self.config.api_key, max_retries=0)
        return self._client

    def complete(self, prompt: str) -> str:
        message = self.client.messages.create(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            system=RANK_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        result = ""
        for block in message.content:
            if hasattr(block, "text"):
                result += block.text
        return result.strip()

    def rank(self, fragment: str, candidates: List[str]) -> Optional[int]:
        reply = self.complete(build_rank_prompt(fragment, candidates))
        logger.debug(f"Ranker reply: {reply!r}")
        return parse_rank_response(reply)
