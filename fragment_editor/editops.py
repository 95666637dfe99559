from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List

from fragment_editor.ir import MatchType

COMPOSITE_SEPARATOR = "+"

@dataclass
class Suggestion:
    type: MatchType
    para_index: int              # originalIndex of the target element
    element_id: str
    element_type: str
    similarity: float
    old_text: str
    new_text: str
    fragments: List[str]         # one per folded directive, in application order
    replacements: List[str]
    directive_index: int         # first directive folded in
    directive_indices: List[int] = field(default_factory=list)

    @property
    def fragment(self) -> str:
        return COMPOSITE_SEPARATOR.join(self.fragments)

    @property
    def replace_with(self) -> str:
        return COMPOSITE_SEPARATOR.join(self.replacements)

    @property
    def replacement_count(self) -> int:
        return len(self.fragments)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["fragment"] = self.fragment
        d["replace_with"] = self.replace_with
        d["replacement_count"] = self.replacement_count
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Suggestion":
        fragments = d.get("fragments")
        replacements = d.get("replacements")
        if fragments is None:
            fragments = str(d.get("fragment", "")).split(COMPOSITE_SEPARATOR)
        if replacements is None:
            replacements = str(d.get("replace_with", "")).split(COMPOSITE_SEPARATOR)
        return cls(
            type=d["type"],
            para_index=int(d["para_index"]),
            element_id=d.get("element_id", ""),
            element_type=d.get("element_type", ""),
            similarity=float(d.get("similarity", 0.0)),
            old_text=d["old_text"],
            new_text=d["new_text"],
            fragments=list(fragments),
            replacements=list(replacements),
            directive_index=int(d.get("directive_index", 0)),
            directive_indices=[int(i) for i in d.get("directive_indices", [])],
        )

@dataclass
class BackupEntry:
    para_index: int
    element_type: str
    old_text: str                # text actually overwritten at apply time
    new_text: str                # text actually written
    fragments: List[str]
    replacements: List[str]
    type: MatchType

    @property
    def replacement_count(self) -> int:
        return len(self.fragments)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["replacement_count"] = self.replacement_count
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BackupEntry":
        return cls(
            para_index=int(d["para_index"]),
            element_type=d.get("element_type", ""),
            old_text=d["old_text"],
            new_text=d["new_text"],
            fragments=list(d.get("fragments", [])),
            replacements=list(d.get("replacements", [])),
            type=d.get("type", "EXACT"),
        )
