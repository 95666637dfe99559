from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict, List

from fragment_editor.adapters import open_document
from fragment_editor.changelog import write_json, write_txt
from fragment_editor.config import load_config
from fragment_editor.editops import Suggestion
from fragment_editor.errors import FragmentEditorError
from fragment_editor.pipeline import FragmentEditor
from fragment_editor.rules.load_directives import load_directives
from fragment_editor.store import JsonFileStore

logger = logging.getLogger(__name__)


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logging.basicConfig(level=level, handlers=[handler])


def _write_report(path: str, payload: Dict[str, Any]) -> None:
    if path.lower().endswith(".json"):
        write_json(path, payload)
    else:
        write_txt(path, payload)


def _payload(operation: str, document: str, editor: FragmentEditor, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "operation": operation,
        "document": document,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        **body,
        "log": editor.log.entries(last=200),
    }


def _load_suggestions(path: str) -> List[Suggestion]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("suggestions", [])
    return [Suggestion.from_dict(d) for d in data]


def _run_preview(args) -> Dict[str, Any]:
    config = load_config(args.config)
    if args.use_llm:
        config.use_ai = True
    if args.anthropic_api_key:
        config.api_key = args.anthropic_api_key
    if args.llm_model:
        config.model = args.llm_model

    document = open_document(args.document)
    directives = load_directives(args.directives)
    settings = {"aiThreshold": args.ai_threshold} if args.ai_threshold is not None else None

    with FragmentEditor(document, JsonFileStore.for_document(args.document), config) as editor:
        result = editor.generate_preview(directives, settings)
        suggestions_path = args.out or str(Path(args.document).with_suffix(".suggestions.json"))
        write_json(suggestions_path, result.to_dict())
        if args.report:
            _write_report(args.report, _payload("preview", args.document, editor, result.to_dict()))

    return {
        "summary": result.summary,
        "suggestions": len(result.suggestions),
        "exact": sum(1 for s in result.suggestions if s.type == "EXACT"),
        "ai": sum(1 for s in result.suggestions if s.type == "AI"),
        "unmatched": len(result.unmatched),
        "skipped": len(result.skipped_directives),
        "suggestions_file": suggestions_path,
    }


def _run_apply(args) -> Dict[str, Any]:
    document = open_document(args.document)
    suggestions = _load_suggestions(args.suggestions)
    if args.only:
        wanted = set(args.only)
        suggestions = [s for s in suggestions if s.element_id in wanted or str(s.para_index) in wanted]

    out_path = args.out or args.document
    with FragmentEditor(document, JsonFileStore.for_document(out_path), load_config(args.config)) as editor:
        editor.approve(suggestions)
        result = editor.apply_suggestions()
        if result.applied_count:
            document.save(out_path)
        if args.report:
            body = {"summary": result.summary, "errors": result.errors,
                    "suggestions": [s.to_dict() for s in suggestions]}
            _write_report(args.report, _payload("apply", out_path, editor, body))

    return {
        "summary": result.summary,
        "applied": result.applied_count,
        "total": result.total,
        "errors": result.errors,
        "output": out_path,
    }


def _run_undo(args) -> Dict[str, Any]:
    document = open_document(args.document)
    with FragmentEditor(document, JsonFileStore.for_document(args.document), load_config(args.config)) as editor:
        result = editor.undo_last_run()
        if result.undone_count:
            document.save(args.document)
    return {
        "summary": result.summary,
        "undone": result.undone_count,
        "errors": result.errors,
    }


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(
        prog="fragment-edit",
        description="Directive-driven find-and-replace for structured documents"
    )
    ap.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG logging")
    ap.add_argument("--config", help="Path to YAML config file (optional)")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("preview", help="Match directives and write suggestions")
    p.add_argument("document", help="Path to .docx or .json document")
    p.add_argument("directives", help="JSON or YAML list of {fragment, replaceWith}")
    p.add_argument("-o", "--out", help="Suggestions output path (default: <document>.suggestions.json)")
    p.add_argument("--report", help="Write a report (.json or .txt)")
    p.add_argument("--ai-threshold", type=float, default=None, help="Semantic candidate floor (default 0.15)")

    llm_group = p.add_argument_group("LLM Options")
    llm_group.add_argument(
        "--use-llm", "--ai",
        dest="use_llm",
        action="store_true",
        help="Enable Claude ranking for unmatched directives (requires ANTHROPIC_API_KEY)"
    )
    llm_group.add_argument(
        "--anthropic-api-key",
        default=os.environ.get("ANTHROPIC_API_KEY"),
        help="Anthropic API key (or set ANTHROPIC_API_KEY env var)"
    )
    llm_group.add_argument("--llm-model", default=None, help="Claude model used for ranking")

    a = sub.add_parser("apply", help="Apply suggestions and record an undo backup")
    a.add_argument("document", help="Path to .docx or .json document")
    a.add_argument("suggestions", help="Suggestions JSON written by preview")
    a.add_argument("-o", "--out", help="Output document path (default: overwrite input)")
    a.add_argument("--only", nargs="+", help="Apply only these element ids or paragraph indices")
    a.add_argument("--report", help="Write a report (.json or .txt)")

    u = sub.add_parser("undo", help="Revert the last apply")
    u.add_argument("document", help="Path to the document that was applied to")

    args = ap.parse_args(argv)
    _setup_logging(args.verbose)

    if args.command == "preview" and args.use_llm and not args.anthropic_api_key:
        ap.error("--use-llm requires --anthropic-api-key or ANTHROPIC_API_KEY environment variable")

    runners = {"preview": _run_preview, "apply": _run_apply, "undo": _run_undo}
    try:
        output = runners[args.command](args)
    except (FragmentEditorError, OSError, ValueError) as e:
        print(json.dumps({"error": str(e)}, indent=2), file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
