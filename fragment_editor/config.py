from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional
import logging
import os

import yaml

logger = logging.getLogger(__name__)


@dataclass
class EditorConfig:
    """Settings for a FragmentEditor session."""
    # Semantic matching
    ai_threshold: float = 0.15       # Stage-1 similarity floor
    max_candidates: int = 3          # chunks presented to the ranker
    stage1_keep: int = 20
    chunk_chars: int = 100
    token_budget: int = 2000         # prompt cap, ~4 chars/token
    use_ai: bool = False

    # Claude ranker
    api_key: Optional[str] = field(default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY"))
    model: str = "claude-sonnet-4-20250514"
    max_retries: int = 3
    base_delay: float = 1.0
    max_output_tokens: int = 8

    # Bounded session state
    cache_size: int = 100
    log_capacity: int = 1000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditorConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


def load_config(path: Optional[str] = None) -> EditorConfig:
    if not path:
        return EditorConfig()
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must be a mapping, got {type(data).__name__}")
    return EditorConfig.from_dict(data)
