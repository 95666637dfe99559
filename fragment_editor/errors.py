from __future__ import annotations


class FragmentEditorError(Exception):
    """Base class for errors raised past a batch boundary."""


class DocumentAccessError(FragmentEditorError):
    """The document root content could not be obtained at all."""


class InvalidStateError(FragmentEditorError):
    """An operation was invoked from a state that does not allow it."""
