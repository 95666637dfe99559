from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, List, Optional
import json

from fragment_editor.adapters.base import DocumentAdapter, Leaf, walk_leaves
from fragment_editor.errors import DocumentAccessError
from fragment_editor.ir import ElementTypeName

LEAF_KINDS = {"Paragraph", "Heading", "ListItem", "TableCell", "Text"}

@dataclass
class MemoryNode:
    kind: str                    # Document|Body|Table|TableRow or a leaf kind
    text: str = ""
    children: List["MemoryNode"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"type": self.kind}
        if self.kind in LEAF_KINDS:
            d["text"] = self.text
        if self.children:
            d["children"] = [c.to_dict() for c in self.children]
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MemoryNode":
        return cls(
            kind=str(d.get("type", "Paragraph")),
            text=str(d.get("text", "")),
            children=[cls.from_dict(c) for c in d.get("children", []) or []],
        )


class MemoryLeaf(Leaf):
    type_name: ClassVar[ElementTypeName] = "Text"

    def __init__(self, node: MemoryNode):
        self.node = node

    def read_text(self) -> str:
        return self.node.text

    def write_text(self, text: str) -> None:
        self.node.text = text


class MemoryParagraphLeaf(MemoryLeaf):
    type_name: ClassVar[ElementTypeName] = "Paragraph"

class MemoryHeadingLeaf(MemoryLeaf):
    type_name: ClassVar[ElementTypeName] = "Heading"

class MemoryListItemLeaf(MemoryLeaf):
    type_name: ClassVar[ElementTypeName] = "ListItem"

class MemoryCellLeaf(MemoryLeaf):
    type_name: ClassVar[ElementTypeName] = "TableCell"


_LEAF_CLASSES = {
    "Paragraph": MemoryParagraphLeaf,
    "Heading": MemoryHeadingLeaf,
    "ListItem": MemoryListItemLeaf,
    "TableCell": MemoryCellLeaf,
    "Text": MemoryLeaf,
}


class MemoryDocument(DocumentAdapter):
    """A plain node tree, loadable from and savable to JSON."""

    def __init__(self, root: MemoryNode):
        self.root = root

    @classmethod
    def from_texts(cls, texts: List[str], kind: str = "Paragraph") -> "MemoryDocument":
        return cls(MemoryNode("Document", children=[MemoryNode(kind, t) for t in texts]))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MemoryDocument":
        return cls(MemoryNode.from_dict(d))

    @classmethod
    def load(cls, path: str) -> "MemoryDocument":
        try:
            with open(path, "r", encoding="utf-8") as f:
                return cls.from_dict(json.load(f))
        except (OSError, ValueError) as e:
            raise DocumentAccessError(f"Could not open document: {e}") from e

    def save(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.root.to_dict(), f, ensure_ascii=False, indent=2)

    def iter_leaves(self) -> Iterator[Leaf]:
        return walk_leaves(self.root, lambda n: n.children, _to_leaf)


def _to_leaf(node: MemoryNode) -> Optional[Leaf]:
    cls = _LEAF_CLASSES.get(node.kind)
    return cls(node) if cls else None
