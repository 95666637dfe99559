from __future__ import annotations
from typing import Dict, Any, List
import json

def write_json(path: str, payload: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)

def write_txt(path: str, payload: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_txt(payload))

def render_txt(payload: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append(f"Fragment Editor {payload.get('operation', 'report')}: {payload.get('document')}")
    lines.append(f"Generated: {payload.get('timestamp_utc')}")
    lines.append("")
    lines.append("Summary")
    lines.append(f"- {payload.get('summary')}")
    lines.append("")

    suggestions = payload.get("suggestions", []) or []
    if suggestions:
        lines.append("Suggestions")
        for s in suggestions[:50]:
            lines.append(
                f"- [{s['type']}] #{s['para_index']} {s['element_type']} "
                f"(x{s['replacement_count']}, sim={s['similarity']:.2f}): "
                f"{s['fragment']!r} -> {s['replace_with']!r}"
            )
        if len(suggestions) > 50:
            lines.append(f"... plus {len(suggestions)-50} more.")
        lines.append("")

    fixed = payload.get("fixed", []) or []
    if fixed:
        lines.append("Repaired fragments")
        for f in fixed:
            lines.append(f"- directive {f['directive_index']} ({', '.join(f['fix_type'])}): {f['original_fragment']!r} -> {f['fragment']!r}")
        lines.append("")

    if payload.get("unmatched"):
        lines.append(f"Unmatched directives: {', '.join(str(i) for i in payload['unmatched'])}")
    for s in payload.get("skipped_directives", []) or []:
        lines.append(f"- Skipped: {s}")
    for a in payload.get("skipped_ai", []) or []:
        lines.append(f"- AI match dropped: directive {a['directive_index']} @ #{a['para_index']}")

    errors = payload.get("errors", []) or []
    if errors:
        lines.append("")
        lines.append("Errors")
        for e in errors:
            lines.append(f"- {e}")

    log = payload.get("log", []) or []
    if log:
        lines.append("")
        lines.append(f"Log (last {len(log)})")
        lines.extend(f"  {entry}" for entry in log)
    return "\n".join(lines)
