"""
Host document collaborators.

A document is exposed to the core as an ordered sequence of leaves. Every
leaf variant has the same fixed capability set: read_text, write_text and
find_literal. Container nodes (tables, rows, the document root) are never
leaves.
"""
from __future__ import annotations
from typing import Any, Callable, ClassVar, Iterable, Iterator, Optional
import logging

from fragment_editor.ir import ElementTypeName

logger = logging.getLogger(__name__)


class Leaf:
    """A text-bearing terminal unit of a document."""
    type_name: ClassVar[ElementTypeName] = "Text"

    def read_text(self) -> str:
        raise NotImplementedError

    def write_text(self, text: str) -> None:
        raise NotImplementedError

    def find_literal(self, fragment: str) -> bool:
        return bool(fragment) and fragment in self.read_text()


class DocumentAdapter:
    """Document collaborator consumed by the element index and apply engine."""

    def iter_leaves(self) -> Iterator[Leaf]:
        raise NotImplementedError

    def save(self, path: str) -> None:
        raise NotImplementedError


def walk_leaves(
    root: Any,
    children: Callable[[Any], Iterable[Any]],
    to_leaf: Callable[[Any], Optional[Leaf]],
) -> Iterator[Leaf]:
    """
    Pre-order traversal yielding leaves.

    `to_leaf` returns a Leaf for terminal nodes and None for containers. The
    root itself is never yielded. A child whose access raises is logged and
    skipped; traversal continues with its siblings.
    """
    stack = [iter(children(root))]
    while stack:
        try:
            node = next(stack[-1])
        except StopIteration:
            stack.pop()
            continue
        except Exception as e:
            logger.warning(f"Skipping unreadable node: {type(e).__name__}: {e}")
            stack.pop()
            continue
        try:
            leaf = to_leaf(node)
            if leaf is not None:
                yield leaf
                continue
            stack.append(iter(children(node)))
        except Exception as e:
            logger.warning(f"Skipping node that raised on access: {type(e).__name__}: {e}")
