from __future__ import annotations
from typing import Any, Dict, List
import json
import logging

import yaml

from fragment_editor.ir import Directive

logger = logging.getLogger(__name__)

FRAGMENT_KEYS = ("fragment", "find")
REPLACEMENT_KEYS = ("replaceWith", "replace_with", "replace")


def _first(entry: Dict[str, Any], keys) -> str:
    for k in keys:
        v = entry.get(k)
        if v is not None:
            return str(v)
    return ""


def parse_directives(data: Any) -> List[Directive]:
    """
    Directives from a decoded JSON/YAML list.

    Entries that are not mappings, or lack a fragment or replacement, become
    empty directives so they are counted as skipped rather than vanishing.
    """
    if isinstance(data, dict):
        data = data.get("directives", [])
    if not isinstance(data, list):
        raise ValueError("Directives must be a list of {fragment, replaceWith} objects")

    directives: List[Directive] = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            logger.warning(f"Directive {i} is not an object")
            directives.append(Directive("", ""))
            continue
        directives.append(Directive(
            fragment=_first(entry, FRAGMENT_KEYS),
            replace_with=_first(entry, REPLACEMENT_KEYS),
        ))
    return directives


def load_directives(path: str) -> List[Directive]:
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    if path.lower().endswith(".json"):
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    return parse_directives(data or [])
