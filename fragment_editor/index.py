from __future__ import annotations
from typing import List, Optional
import hashlib
import logging

from fragment_editor.adapters.base import DocumentAdapter
from fragment_editor.ir import DocumentElement

logger = logging.getLogger(__name__)


def element_id(type_name: str, index: int, text: str) -> str:
    h = hashlib.sha256()
    h.update(f"{type_name}\n{index}\n{text}".encode("utf-8"))
    return f"{type_name.lower()}-{index}-{h.hexdigest()[:12]}"


def index_document(document: DocumentAdapter) -> List[DocumentElement]:
    """
    Flatten a document into its ordered leaf elements.

    original_index follows visitation order and is only stable within one
    call. A leaf whose text cannot be read is skipped but still consumes its
    index, so positions of its siblings do not depend on the failure.
    """
    elements: List[DocumentElement] = []
    skipped = 0
    for i, leaf in enumerate(document.iter_leaves()):
        try:
            text = leaf.read_text()
        except Exception as e:
            logger.warning(f"Skipping element {i}: text not readable ({type(e).__name__}: {e})")
            skipped += 1
            continue
        elements.append(DocumentElement(
            id=element_id(leaf.type_name, i, text),
            text=text,
            type_name=leaf.type_name,
            original_index=i,
            leaf=leaf,
        ))
    logger.debug(f"Indexed {len(elements)} elements ({skipped} unreadable)")
    return elements


def find_by_index(elements: List[DocumentElement], original_index: int) -> Optional[DocumentElement]:
    for el in elements:
        if el.original_index == original_index:
            return el
    return None


def find_by_id(elements: List[DocumentElement], eid: str) -> Optional[DocumentElement]:
    for el in elements:
        if el.id == eid:
            return el
    return None


def find_by_text(elements: List[DocumentElement], text: str) -> Optional[DocumentElement]:
    """First element, in document order, whose text equals `text` exactly."""
    for el in elements:
        if el.text == text:
            return el
    return None
