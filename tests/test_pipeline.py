import io

import pytest
from docx import Document

from fakes import FakeRanker
from fragment_editor import Directive, EditorConfig, FragmentEditor, InvalidStateError
from fragment_editor.adapters import DocxDocument, MemoryDocument
from fragment_editor.index import index_document

def _editor(texts, **kw):
    return FragmentEditor(MemoryDocument.from_texts(texts), **kw)

def test_no_matches_no_backend():
    with _editor(["nothing relevant here"]) as editor:
        result = editor.generate_preview([{"fragment": "zebra", "replaceWith": "x"},
                                          {"fragment": "yak", "replaceWith": "y"}])
    assert result.suggestions == []
    assert len(result.unmatched) == result.total_directives == 2

def test_verbatim_fragment_gives_exact_suggestion():
    with _editor(["one", "the target phrase", "two"]) as editor:
        result = editor.generate_preview([Directive("target phrase", "goal")])
    [s] = result.suggestions
    assert (s.type, s.para_index, s.similarity) == ("EXACT", 1, 1.0)
    assert s.new_text == "the goal"

def test_malformed_directives_are_tallied():
    with _editor(["text"]) as editor:
        result = editor.generate_preview([{"fragment": "", "replaceWith": "x"}, {"find": "text"}, "junk"])
    assert len(result.skipped_directives) == 3
    assert result.suggestions == []
    assert result.unmatched == []

def test_state_machine():
    editor = _editor(["alpha"])
    try:
        assert editor.state == "idle"
        with pytest.raises(InvalidStateError):
            editor.apply_suggestions()

        editor.generate_preview([Directive("alpha", "beta")])
        assert editor.state == "awaiting_approval"

        result = editor.apply_suggestions()
        assert result.applied_count == 1
        assert editor.state == "applied"
        assert editor.get_progress().to_dict() == {"applied": 1, "total": 1, "done": True}

        with pytest.raises(InvalidStateError):
            editor.apply_suggestions()

        assert editor.undo_last_run().undone_count == 1
        assert editor.state == "idle"
        assert editor.undo_last_run().nothing_to_undo
    finally:
        editor.close()

def test_ai_fallback_through_editor():
    ranker = FakeRanker(0)
    with _editor(["The quick brown fox jumps over the lazy dog."], ranker=ranker) as editor:
        result = editor.generate_preview([Directive("quick brown fox leaps", "A fox leapt.")], {"aiThreshold": 0.2})
        [s] = result.suggestions
        assert s.type == "AI"
        assert s.new_text == "A fox leapt."
        editor.apply_suggestions()
    assert len(ranker.calls) == 1

def test_exact_and_ai_on_same_element_keeps_exact():
    ranker = FakeRanker(0)
    with _editor(["The quick brown fox jumps over the lazy dog."], ranker=ranker) as editor:
        result = editor.generate_preview([Directive("lazy dog", "cat"), Directive("quick brown fox leaps", "x")])
    [s] = result.suggestions
    assert s.type == "EXACT"
    assert [c.directive_index for c in result.skipped_ai] == [1]
    assert "1 AI match(es) dropped" in result.summary

def test_operation_log_is_bounded_and_detached():
    editor = _editor(["alpha"], config=EditorConfig(log_capacity=3))
    editor.generate_preview([Directive("alpha", "beta"), Directive("zzz", "y")])
    entries = editor.log.entries()
    assert 0 < len(entries) <= 3
    editor.close()
    editor.log.clear()
    editor.generate_preview([Directive("alpha", "beta")])
    assert editor.log.entries() == []

def test_docx_round_trip():
    doc = Document()
    doc.add_paragraph("Digital twins - a primer")
    table = doc.add_table(rows=1, cols=1)
    table.cell(0, 0).text = "It's in the cell"

    with FragmentEditor(DocxDocument(doc)) as editor:
        result = editor.generate_preview([
            Directive("Digital twins - a primer", "Digital twins: a primer"),
            Directive("It’s in the cell", "Now in the cell"),
        ])
        assert len(result.suggestions) == 2
        assert editor.apply_suggestions().applied_count == 2

    buf = io.BytesIO()
    doc.save(buf)
    buf.seek(0)
    texts = [e.text for e in index_document(DocxDocument(buf)) if e.text]
    assert texts == ["Digital twins: a primer", "Now in the cell"]
