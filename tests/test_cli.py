import json

from fragment_editor.cli import main

def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")

def _doc_texts(path):
    data = json.loads(path.read_text(encoding="utf-8"))
    return [c["text"] for c in data["children"]]

def test_preview_apply_undo(tmp_path, capsys):
    doc = tmp_path / "doc.json"
    _write(doc, {"type": "Document", "children": [
        {"type": "Heading", "text": "Intro — overview"},
        {"type": "Paragraph", "text": "Colour and flavour."},
    ]})
    directives = tmp_path / "directives.json"
    _write(directives, [
        {"fragment": "Intro - overview", "replaceWith": "Introduction"},
        {"fragment": "Colour", "replaceWith": "Color"},
        {"fragment": "flavour", "replaceWith": "flavor"},
        {"fragment": "missing", "replaceWith": "x"},
    ])
    suggestions = tmp_path / "s.json"
    report = tmp_path / "preview.txt"

    assert main(["preview", str(doc), str(directives), "-o", str(suggestions), "--report", str(report)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["suggestions"] == 2
    assert out["unmatched"] == 1
    assert "Suggestions" in report.read_text(encoding="utf-8")

    assert main(["apply", str(doc), str(suggestions)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["applied"] == 2
    assert _doc_texts(doc) == ["Introduction", "Color and flavor."]
    assert (tmp_path / "doc.json.fragment-editor.json").exists()

    assert main(["undo", str(doc)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["undone"] == 2
    assert _doc_texts(doc) == ["Intro — overview", "Colour and flavour."]

    assert main(["undo", str(doc)]) == 0
    assert json.loads(capsys.readouterr().out)["summary"] == "Nothing to undo"

def test_apply_only_selected(tmp_path, capsys):
    doc = tmp_path / "doc.json"
    _write(doc, {"type": "Document", "children": [
        {"type": "Paragraph", "text": "a x"},
        {"type": "Paragraph", "text": "b x"},
    ]})
    directives = tmp_path / "d.json"
    _write(directives, [{"fragment": "x", "replaceWith": "y"}])
    suggestions = tmp_path / "s.json"
    out_doc = tmp_path / "out.json"

    main(["preview", str(doc), str(directives), "-o", str(suggestions)])
    capsys.readouterr()
    assert main(["apply", str(doc), str(suggestions), "-o", str(out_doc), "--only", "1"]) == 0
    assert json.loads(capsys.readouterr().out)["applied"] == 1
    assert _doc_texts(out_doc) == ["a x", "b y"]
    assert _doc_texts(doc) == ["a x", "b x"]

def test_missing_document_reports_error(tmp_path, capsys):
    directives = tmp_path / "d.json"
    _write(directives, [])
    assert main(["preview", str(tmp_path / "nope.json"), str(directives)]) == 1
    assert "error" in json.loads(capsys.readouterr().err)
