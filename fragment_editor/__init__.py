from __future__ import annotations

from fragment_editor.config import EditorConfig, load_config
from fragment_editor.errors import DocumentAccessError, FragmentEditorError, InvalidStateError
from fragment_editor.ir import Directive
from fragment_editor.pipeline import FragmentEditor, PreviewResult

__all__ = [
    "Directive",
    "DocumentAccessError",
    "EditorConfig",
    "FragmentEditor",
    "FragmentEditorError",
    "InvalidStateError",
    "PreviewResult",
    "load_config",
]
