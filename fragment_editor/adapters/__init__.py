from __future__ import annotations

from fragment_editor.adapters.base import DocumentAdapter, Leaf
from fragment_editor.adapters.docx_adapter import DocxDocument
from fragment_editor.adapters.memory_adapter import MemoryDocument, MemoryNode


def open_document(path: str) -> DocumentAdapter:
    """Open a .docx or a JSON node tree by file extension."""
    if path.lower().endswith(".json"):
        return MemoryDocument.load(path)
    return DocxDocument(path)


__all__ = ["DocumentAdapter", "Leaf", "DocxDocument", "MemoryDocument", "MemoryNode", "open_document"]
