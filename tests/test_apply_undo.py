import json

from fragment_editor.adapters import MemoryDocument, MemoryNode
from fragment_editor.adapters.memory_adapter import MemoryParagraphLeaf
from fragment_editor.adapters.base import DocumentAdapter
from fragment_editor.apply import apply_suggestions, undo_last_run
from fragment_editor.fixer import fix_directives
from fragment_editor.index import index_document
from fragment_editor.ir import Directive
from fragment_editor.matching import match_directives
from fragment_editor.state import PROGRESS_KEY, ProgressTracker
from fragment_editor.store import BACKUP_KEY, MemoryStore
from fragment_editor.suggestions import build_suggestions

def _preview(doc, *pairs):
    elements = index_document(doc)
    fixed = fix_directives([Directive(f, r) for f, r in pairs], elements)
    return build_suggestions(match_directives(fixed, elements).groups)

def _texts(doc):
    return [el.text for el in index_document(doc)]

def test_apply_then_undo_restores_bytes():
    original = ["It’s  a “quoted” line — here.", "alpha beta", "untouched"]
    doc = MemoryDocument.from_texts(original)
    store = MemoryStore()
    suggestions = _preview(doc, ("It's a", "This is a"), ("alpha", "omega"))
    assert len(suggestions) == 2

    result = apply_suggestions(doc, suggestions, store)
    assert result.applied_count == 2
    assert result.errors == []
    assert _texts(doc) != original

    undo = undo_last_run(doc, store)
    assert undo.undone_count == 2
    assert _texts(doc) == original

def test_undo_twice_reports_nothing_to_undo():
    doc = MemoryDocument.from_texts(["alpha"])
    store = MemoryStore()
    apply_suggestions(doc, _preview(doc, ("alpha", "beta")), store)
    assert undo_last_run(doc, store).undone_count == 1
    assert store.get(BACKUP_KEY) is None

    second = undo_last_run(doc, store)
    assert second.nothing_to_undo
    assert second.summary == "Nothing to undo"
    assert _texts(doc) == ["alpha"]

def test_composite_applies_both_replacements():
    doc = MemoryDocument.from_texts(["red fish, blue fish"])
    suggestions = _preview(doc, ("red", "one"), ("blue", "two"))
    assert len(suggestions) == 1
    assert suggestions[0].replacement_count == 2
    apply_suggestions(doc, suggestions, MemoryStore())
    assert _texts(doc) == ["one fish, two fish"]

def test_compatible_drift_still_applies():
    doc = MemoryDocument.from_texts(["X marks the spot"])
    suggestions = _preview(doc, ("marks", "shows"))
    doc.root.children[0].text = "X marks the spot-modified"

    result = apply_suggestions(doc, suggestions, MemoryStore())
    assert result.applied_count == 1
    assert _texts(doc) == ["X shows the spot-modified"]

def test_incompatible_drift_is_skipped_not_fatal():
    doc = MemoryDocument.from_texts(["first target", "second target"])
    suggestions = _preview(doc, ("target", "goal"))
    doc.root.children[0].text = "rewritten entirely"

    result = apply_suggestions(doc, suggestions, MemoryStore())
    assert result.applied_count == 1
    assert result.total == 2
    assert len(result.errors) == 1
    assert "changed since preview" in result.errors[0]
    assert _texts(doc) == ["rewritten entirely", "second goal"]
    assert result.summary == "Applied 1/2 suggestions, 1 error(s)"

def test_deleted_element_resolved_by_text():
    doc = MemoryDocument.from_texts(["intro", "fix this word"])
    suggestions = _preview(doc, ("word", "term"))
    del doc.root.children[0]
    store = MemoryStore()

    assert apply_suggestions(doc, suggestions, store).applied_count == 1
    assert _texts(doc) == ["fix this term"]
    assert undo_last_run(doc, store).undone_count == 1
    assert _texts(doc) == ["fix this word"]

def test_undo_resolves_by_text_when_index_is_gone():
    doc = MemoryDocument.from_texts(["intro", "fix this word"])
    store = MemoryStore()
    apply_suggestions(doc, _preview(doc, ("word", "term")), store)
    del doc.root.children[0]

    assert undo_last_run(doc, store).undone_count == 1
    assert _texts(doc) == ["fix this word"]

def test_inserted_element_is_not_resolved_by_text():
    doc = MemoryDocument.from_texts(["intro", "fix this word"])
    suggestions = _preview(doc, ("word", "term"))
    doc.root.children.insert(0, MemoryNode("Paragraph", "new first paragraph"))

    result = apply_suggestions(doc, suggestions, MemoryStore())
    assert result.applied_count == 0
    assert "changed since preview" in result.errors[0]
    assert _texts(doc) == ["new first paragraph", "intro", "fix this word"]

def test_drifted_target_wins_over_duplicate_text():
    doc = MemoryDocument.from_texts(["Foo bar", "Foo bar"])
    suggestions = _preview(doc, ("Foo", "Baz"))
    assert [s.para_index for s in suggestions] == [0, 1]
    doc.root.children[0].text = "Foo bar!"
    store = MemoryStore()

    result = apply_suggestions(doc, suggestions[:1], store)
    assert result.applied_count == 1
    assert _texts(doc) == ["Baz bar!", "Foo bar"]
    assert [b["para_index"] for b in json.loads(store.get(BACKUP_KEY))] == [0]

def test_undo_of_edited_element_ignores_duplicate_text():
    doc = MemoryDocument.from_texts(["Foo bar", "Baz bar"])
    store = MemoryStore()
    apply_suggestions(doc, _preview(doc, ("Foo", "Baz")), store)
    assert _texts(doc) == ["Baz bar", "Baz bar"]
    doc.root.children[0].text = "Baz bar!"

    assert undo_last_run(doc, store).undone_count == 1
    assert _texts(doc) == ["Foo bar!", "Baz bar"]

def test_case_insensitive_match_is_replaced_verbatim():
    doc = MemoryDocument.from_texts(["Teh Quick Brown Fox"])
    suggestions = _preview(doc, ("teh quick", "the quick"))
    assert suggestions[0].similarity == 1.0
    apply_suggestions(doc, suggestions, MemoryStore())
    assert _texts(doc) == ["the quick Brown Fox"]

def test_em_dash_fragment_applies_over_hyphen_directive():
    doc = MemoryDocument.from_texts(["It ends here — and then more."])
    suggestions = _preview(doc, ("ends here - and then", "stops, and then"))
    assert suggestions[0].type == "EXACT"
    apply_suggestions(doc, suggestions, MemoryStore())
    assert _texts(doc) == ["It stops, and then more."]

def test_progress_and_backup_are_published():
    doc = MemoryDocument.from_texts(["a x", "b x", "c x"])
    store = MemoryStore()
    progress = ProgressTracker(store)
    result = apply_suggestions(doc, _preview(doc, ("x", "y")), store, progress)

    snap = progress.snapshot()
    assert (snap.applied, snap.total, snap.done) == (3, 3, True)
    assert json.loads(store.get(PROGRESS_KEY)) == {"applied": 3, "total": 3, "done": True}
    backup = json.loads(store.get(BACKUP_KEY))
    assert [b["para_index"] for b in backup] == [2, 1, 0]
    assert backup[0]["old_text"] == "c x"
    assert backup[0]["new_text"] == "c y"
    assert result.applied_count == 3

class _ReadOnlyLeaf(MemoryParagraphLeaf):
    def write_text(self, text):
        raise PermissionError("protected range")

class _MixedDocument(DocumentAdapter):
    def __init__(self, leaves):
        self.leaves = leaves

    def iter_leaves(self):
        return iter(self.leaves)

def test_write_failure_is_collected():
    doc = _MixedDocument([
        _ReadOnlyLeaf(MemoryNode("Paragraph", "locked x")),
        MemoryParagraphLeaf(MemoryNode("Paragraph", "open x")),
    ])
    store = MemoryStore()
    result = apply_suggestions(doc, _preview(doc, ("x", "y")), store)
    assert result.applied_count == 1
    assert "write failed" in result.errors[0]
    assert len(json.loads(store.get(BACKUP_KEY))) == 1

def test_nothing_applied_keeps_previous_backup():
    doc = MemoryDocument.from_texts(["alpha"])
    store = MemoryStore()
    apply_suggestions(doc, _preview(doc, ("alpha", "beta")), store)
    before = store.get(BACKUP_KEY)

    stale = _preview(MemoryDocument.from_texts(["gamma"]), ("gamma", "delta"))
    result = apply_suggestions(doc, stale, store)
    assert result.applied_count == 0
    assert store.get(BACKUP_KEY) == before

def test_undo_after_later_edit_replays_in_reverse():
    doc = MemoryDocument.from_texts(["red fish, blue fish"])
    store = MemoryStore()
    apply_suggestions(doc, _preview(doc, ("red", "one"), ("blue", "two")), store)
    doc.root.children[0].text = "one fish, two fish!"

    assert undo_last_run(doc, store).undone_count == 1
    assert _texts(doc) == ["red fish, blue fish!"]
