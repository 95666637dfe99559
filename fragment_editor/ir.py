from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Literal, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from fragment_editor.adapters.base import Leaf

ElementTypeName = Literal["Paragraph", "Heading", "ListItem", "Table", "TableCell", "Text"]
MatchType = Literal["EXACT", "AI"]

@dataclass(frozen=True)
class Directive:
    fragment: str
    replace_with: str

    def is_valid(self) -> bool:
        return bool(self.fragment) and bool(self.replace_with)

@dataclass
class FixedDirective:
    fragment: str                # search fragment after repairs
    replace_with: str
    original_fragment: str
    directive_index: int         # position in the caller's batch
    was_fixed: bool = False
    fix_type: List[str] = field(default_factory=list)

@dataclass
class DocumentElement:
    id: str            # type + index + content hash
    text: str
    type_name: ElementTypeName
    original_index: int  # position in the leaf traversal, join key preview -> apply
    leaf: Optional["Leaf"] = field(default=None, repr=False, compare=False)

@dataclass
class MatchCandidate:
    element: DocumentElement
    similarity: float
    match_type: MatchType
    directive_index: int
    fragment: str
    replace_with: str
    matched_text: Optional[str] = None  # chunk the ranker picked (AI only)
