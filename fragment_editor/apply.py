"""
Apply / Undo

apply_suggestions writes approved suggestions into the live document and
records what was overwritten; undo_last_run reverts that batch once.

Both are best-effort per element: a drifted or unwritable element is skipped
with an error string and the rest of the batch continues. Only a failure to
read the document at all propagates.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import json
import logging

from fragment_editor.adapters.base import DocumentAdapter
from fragment_editor.editops import BackupEntry, Suggestion
from fragment_editor.index import find_by_id, find_by_index, find_by_text, index_document
from fragment_editor.ir import DocumentElement
from fragment_editor.normalize import contains, replace_all
from fragment_editor.state import ProgressTracker
from fragment_editor.store import BACKUP_KEY, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    applied_count: int = 0
    total: int = 0
    errors: List[str] = field(default_factory=list)
    backup: List[BackupEntry] = field(default_factory=list)

    @property
    def summary(self) -> str:
        s = f"Applied {self.applied_count}/{self.total} suggestions"
        if self.errors:
            s += f", {len(self.errors)} error(s)"
        return s


@dataclass
class UndoResult:
    undone_count: int = 0
    total: int = 0
    errors: List[str] = field(default_factory=list)
    nothing_to_undo: bool = False

    @property
    def summary(self) -> str:
        if self.nothing_to_undo:
            return "Nothing to undo"
        s = f"Undid {self.undone_count}/{self.total} changes"
        if self.errors:
            s += f", {len(self.errors)} error(s)"
        return s


def resolve_target(elements: List[DocumentElement], s: Suggestion) -> Optional[DocumentElement]:
    """
    Live element for a suggestion.

    Tried in order: content-derived id; index, drifted or not (the caller
    checks drift); first element holding the preview text, only when the
    index is gone or holds another element kind.
    """
    if s.element_id:
        el = find_by_id(elements, s.element_id)
        if el is not None:
            return el
    by_index = find_by_index(elements, s.para_index)
    if by_index is not None and (not s.element_type or by_index.type_name == s.element_type):
        return by_index
    return find_by_text(elements, s.old_text)


def _fragment_present(el: DocumentElement, fragment: str) -> bool:
    if el.leaf is not None and el.leaf.find_literal(fragment):
        return True
    return contains(el.text, fragment)


def replay_exact(text: str, fragments: Sequence[str], replacements: Sequence[str]) -> str:
    for fragment, replacement in zip(fragments, replacements):
        text, _ = replace_all(text, fragment, replacement)
    return text


def target_text(el: DocumentElement, s: Suggestion) -> Optional[str]:
    """Text to write for `s`, or None when the element drifted incompatibly."""
    if el.text == s.old_text:
        return s.new_text
    if s.type == "EXACT" and s.fragments and all(_fragment_present(el, f) for f in s.fragments):
        logger.info(f"Element {el.original_index} changed since preview; fragments still present, applying")
        return replay_exact(el.text, s.fragments, s.replacements)
    return None


def _write(el: DocumentElement, text: str) -> None:
    if el.leaf is None:
        raise TypeError(f"{el.type_name} element has no writable leaf")
    el.leaf.write_text(text)


def apply_suggestions(
    document: DocumentAdapter,
    suggestions: Sequence[Suggestion],
    store: KeyValueStore,
    progress: Optional[ProgressTracker] = None,
) -> ApplyResult:
    """
    Apply approved suggestions to the live document.

    The document is re-indexed first; suggestions run highest para_index
    first. Each write is preceded by capturing the element's current text,
    and the backup batch is persisted once at the end.
    """
    progress = progress or ProgressTracker()
    result = ApplyResult(total=len(suggestions))
    progress.start(result.total)
    try:
        elements = index_document(document)
        ordered = sorted(suggestions, key=lambda s: s.para_index, reverse=True)

        for s in ordered:
            try:
                el = resolve_target(elements, s)
                if el is None:
                    result.errors.append(f"Element {s.para_index}: not found in document")
                    logger.warning(result.errors[-1])
                    continue

                new_text = target_text(el, s)
                if new_text is None:
                    result.errors.append(f"Element {s.para_index}: text changed since preview, skipped")
                    logger.warning(result.errors[-1])
                    continue

                before = el.text
                try:
                    _write(el, new_text)
                except Exception as e:
                    result.errors.append(f"Element {s.para_index}: write failed ({type(e).__name__}: {e})")
                    logger.warning(result.errors[-1])
                    continue

                el.text = new_text
                result.backup.append(BackupEntry(
                    para_index=el.original_index,
                    element_type=el.type_name,
                    old_text=before,
                    new_text=new_text,
                    fragments=list(s.fragments),
                    replacements=list(s.replacements),
                    type=s.type,
                ))
                result.applied_count += 1
                logger.debug(f"Element {el.original_index}: applied {s.type} x{s.replacement_count}")
            finally:
                progress.advance()

        if result.backup:
            try:
                store.set(BACKUP_KEY, json.dumps([b.to_dict() for b in result.backup], ensure_ascii=False))
            except Exception as e:
                result.errors.append(f"Backup could not be saved, undo unavailable ({type(e).__name__}: {e})")
                logger.error(result.errors[-1])
    finally:
        progress.finish()

    logger.info(result.summary)
    return result


def load_backup(store: KeyValueStore) -> Optional[List[BackupEntry]]:
    raw = store.get(BACKUP_KEY)
    if not raw:
        return None
    data = json.loads(raw)
    return [BackupEntry.from_dict(d) for d in data]


def _undo_target(elements: List[DocumentElement], entry: BackupEntry) -> Optional[DocumentElement]:
    el = find_by_index(elements, entry.para_index)
    if el is not None and (not entry.element_type or el.type_name == entry.element_type):
        return el
    return find_by_text(elements, entry.new_text)


def revert_text(el: DocumentElement, entry: BackupEntry) -> Optional[str]:
    """Text that undoes `entry` on `el`, or None when nothing can be reverted."""
    if el.text == entry.new_text:
        return entry.old_text
    if entry.type == "EXACT":
        text = el.text
        for fragment, replacement in reversed(list(zip(entry.fragments, entry.replacements))):
            text, _ = replace_all(text, replacement, fragment)
        return text if text != el.text else None
    logger.warning(f"Element {el.original_index} changed after apply; restoring pre-apply text")
    return entry.old_text


def undo_last_run(document: DocumentAdapter, store: KeyValueStore) -> UndoResult:
    """Revert the last applied batch. The backup is consumed even if some entries fail."""
    try:
        entries = load_backup(store)
    except (ValueError, KeyError, TypeError) as e:
        store.delete(BACKUP_KEY)
        result = UndoResult(errors=[f"Backup unreadable, discarded ({type(e).__name__}: {e})"])
        logger.error(result.errors[0])
        return result
    if entries is None:
        logger.info("Nothing to undo")
        return UndoResult(nothing_to_undo=True)

    result = UndoResult(total=len(entries))
    elements = index_document(document)
    try:
        for entry in sorted(entries, key=lambda b: b.para_index, reverse=True):
            el = _undo_target(elements, entry)
            if el is None:
                result.errors.append(f"Element {entry.para_index}: not found in document")
                logger.warning(result.errors[-1])
                continue
            text = revert_text(el, entry)
            if text is None:
                result.errors.append(f"Element {entry.para_index}: replacements no longer present, not reverted")
                logger.warning(result.errors[-1])
                continue
            try:
                _write(el, text)
            except Exception as e:
                result.errors.append(f"Element {entry.para_index}: write failed ({type(e).__name__}: {e})")
                logger.warning(result.errors[-1])
                continue
            el.text = text
            result.undone_count += 1
    finally:
        store.delete(BACKUP_KEY)

    logger.info(result.summary)
    return result
