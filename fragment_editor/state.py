"""
Bounded, explicitly owned state shared across batch operations.

Each object is created by the caller (normally FragmentEditor) and passed
into the core, so separate editors and separate tests never share state.
"""
from __future__ import annotations
from collections import OrderedDict, deque
from dataclasses import dataclass, asdict
from typing import Any, Deque, Dict, Generic, List, Optional, TypeVar, TYPE_CHECKING
import json
import logging

if TYPE_CHECKING:
    from fragment_editor.store import KeyValueStore

K = TypeVar("K")
V = TypeVar("V")

PROGRESS_KEY = "APPLY_PROGRESS"


class BoundedCache(Generic[K, V]):
    """Insertion-ordered cache that evicts the oldest entry beyond capacity."""

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._data: "OrderedDict[K, V]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: K) -> Optional[V]:
        if key in self._data:
            self.hits += 1
            return self._data[key]
        self.misses += 1
        return None

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def set(self, key: K, value: V) -> None:
        if key in self._data:
            self._data.move_to_end(key)
        self._data[key] = value
        while len(self._data) > self.capacity:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class OperationLog(logging.Handler):
    """Ring buffer of formatted log records for the detailed run log."""

    def __init__(self, capacity: int = 1000, level: int = logging.INFO):
        super().__init__(level=level)
        self.records: Deque[str] = deque(maxlen=capacity)
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.records.append(self.format(record))
        except Exception:
            self.handleError(record)

    def entries(self, last: Optional[int] = None) -> List[str]:
        items = list(self.records)
        return items if last is None else items[-last:]

    def clear(self) -> None:
        self.records.clear()


@dataclass
class Progress:
    applied: int = 0
    total: int = 0
    done: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ProgressTracker:
    """Polled progress of the running apply; mirrored to the store when given one."""

    def __init__(self, store: Optional["KeyValueStore"] = None):
        self.store = store
        self._progress = Progress()

    def start(self, total: int) -> None:
        self._progress = Progress(applied=0, total=total, done=False)
        self._publish()

    def advance(self) -> None:
        self._progress.applied += 1
        self._publish()

    def finish(self) -> None:
        self._progress.done = True
        self._publish()

    def snapshot(self) -> Progress:
        p = self._progress
        return Progress(applied=p.applied, total=p.total, done=p.done)

    def _publish(self) -> None:
        if self.store is not None:
            self.store.set(PROGRESS_KEY, json.dumps(self._progress.to_dict()))
