from __future__ import annotations
from typing import Any, ClassVar, Iterator, List, Optional, Union, IO
from docx import Document
from docx.document import Document as DocumentObject
from docx.oxml.ns import qn
from docx.table import Table, _Cell
from docx.text.paragraph import Paragraph

from fragment_editor.adapters.base import DocumentAdapter, Leaf, walk_leaves
from fragment_editor.errors import DocumentAccessError
from fragment_editor.ir import ElementTypeName


def _set_paragraph_text(paragraph: Paragraph, text: str) -> None:
    # first run keeps its formatting and receives the whole text
    p = paragraph._p
    for h in p.xpath("./w:hyperlink"):
        p.remove(h)
    runs = paragraph.runs
    if not runs:
        paragraph.add_run(text)
        return
    runs[0].text = text
    for r in runs[1:]:
        p.remove(r._r)


class DocxParagraphLeaf(Leaf):
    type_name: ClassVar[ElementTypeName] = "Paragraph"

    def __init__(self, paragraph: Paragraph):
        self.paragraph = paragraph

    def read_text(self) -> str:
        return self.paragraph.text

    def write_text(self, text: str) -> None:
        _set_paragraph_text(self.paragraph, text)


class DocxHeadingLeaf(DocxParagraphLeaf):
    type_name: ClassVar[ElementTypeName] = "Heading"


class DocxListItemLeaf(DocxParagraphLeaf):
    type_name: ClassVar[ElementTypeName] = "ListItem"


class DocxCellLeaf(Leaf):
    type_name: ClassVar[ElementTypeName] = "TableCell"

    def __init__(self, cell: _Cell):
        self.cell = cell

    def read_text(self) -> str:
        return "\n".join(p.text for p in self.cell.paragraphs)

    def write_text(self, text: str) -> None:
        lines = text.split("\n")
        paragraphs = self.cell.paragraphs
        if len(lines) == len(paragraphs):
            for p, line in zip(paragraphs, lines):
                if p.text != line:
                    _set_paragraph_text(p, line)
            return
        # paragraph count changed: collapse into the first paragraph (newlines become breaks)
        _set_paragraph_text(paragraphs[0], text)
        for p in paragraphs[1:]:
            p._p.getparent().remove(p._p)


def _paragraph_leaf(p: Paragraph) -> DocxParagraphLeaf:
    style = p.style.name if p.style is not None else ""
    if style.lower().startswith("heading") or style == "Title":
        return DocxHeadingLeaf(p)
    ppr = p._p.pPr
    if style.lower().startswith("list") or (ppr is not None and ppr.numPr is not None):
        return DocxListItemLeaf(p)
    return DocxParagraphLeaf(p)


def _unique_cells(table: Table) -> List[_Cell]:
    # merged cells repeat the same w:tc, across columns and down rows
    seen = set()
    cells = []
    for row in table.rows:
        for cell in row.cells:
            if cell._tc in seen:
                continue
            seen.add(cell._tc)
            cells.append(cell)
    return cells


class DocxDocument(DocumentAdapter):
    """python-docx backed document: body paragraphs and table cells are leaves."""

    def __init__(self, source: Union[str, IO[bytes], DocumentObject, None] = None):
        if isinstance(source, DocumentObject):
            self.doc = source
            return
        try:
            self.doc = Document(source)
        except Exception as e:
            raise DocumentAccessError(f"Could not open document: {e}") from e

    def _block_children(self, container) -> Iterator[Any]:
        for child in container.iterchildren():
            if child.tag == qn("w:p"):
                yield Paragraph(child, self.doc)
            elif child.tag == qn("w:tbl"):
                yield Table(child, self.doc)
            elif child.tag == qn("w:sdt"):
                yield child

    def _children(self, node: Any) -> List[Any]:
        if node is self.doc:
            return list(self._block_children(self.doc.element.body))
        if isinstance(node, Table):
            return _unique_cells(node)
        if getattr(node, "tag", None) == qn("w:sdt"):
            content = node.find(qn("w:sdtContent"))
            return [] if content is None else list(self._block_children(content))
        return []

    def _to_leaf(self, node: Any) -> Optional[Leaf]:
        if isinstance(node, Paragraph):
            return _paragraph_leaf(node)
        if isinstance(node, _Cell):
            return DocxCellLeaf(node)
        return None

    def iter_leaves(self) -> Iterator[Leaf]:
        try:
            body = self.doc.element.body
        except Exception as e:
            raise DocumentAccessError(f"Document body is not readable: {e}") from e
        if body is None:
            raise DocumentAccessError("Document has no body")
        return walk_leaves(self.doc, self._children, self._to_leaf)

    def save(self, path: Union[str, IO[bytes]]) -> None:
        self.doc.save(path)
