from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from .utils import monotonic_ms

logger = logging.getLogger(__name__)


@dataclass
class Deferred:
    """Handle for a scheduled callback; pass it to `DeferredScheduler.cancel`."""

    due_ms: float
    callback: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    label: str = ""
    cancelled: bool = False
    fired: bool = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)


@dataclass
class DeferredScheduler:
    """
    Cooperative, single-threaded deferred callbacks.

    Nothing runs on its own: the frame loop calls `run_pending()` and every
    callback whose due time has passed fires in due order, on the caller's
    thread. Callbacks may schedule or cancel other callbacks.
    """

    clock: Callable[[], float] = monotonic_ms
    _heap: List[Tuple[float, int, Deferred]] = field(default_factory=list)
    _seq: "itertools.count[int]" = field(default_factory=itertools.count)

    def now(self) -> float:
        return float(self.clock())

    def call_later(self, delay_ms: float, callback: Callable[..., Any], *args: Any, label: str = "") -> Deferred:
        return self.call_at(self.now() + max(0.0, float(delay_ms)), callback, *args, label=label)

    def call_at(self, due_ms: float, callback: Callable[..., Any], *args: Any, label: str = "") -> Deferred:
        handle = Deferred(due_ms=float(due_ms), callback=callback, args=args, label=label)
        heapq.heappush(self._heap, (handle.due_ms, next(self._seq), handle))
        return handle

    def cancel(self, handle: Optional[Deferred]) -> None:
        if handle is not None and handle.pending:
            handle.cancelled = True

    def cancel_all(self) -> int:
        n = 0
        for _, _, handle in self._heap:
            if handle.pending:
                handle.cancelled = True
                n += 1
        self._heap.clear()
        if n:
            logger.debug("Cancelled %d deferred callbacks", n)
        return n

    def pending_count(self) -> int:
        return sum(1 for _, _, h in self._heap if h.pending)

    def next_due(self) -> Optional[float]:
        self._drop_cancelled_head()
        return self._heap[0][0] if self._heap else None

    def run_pending(self, now_ms: Optional[float] = None) -> int:
        """Fire every callback due at or before `now_ms` (defaults to the clock)."""
        now = self.now() if now_ms is None else float(now_ms)
        fired = 0
        while True:
            self._drop_cancelled_head()
            if not self._heap or self._heap[0][0] > now:
                break
            _, _, handle = heapq.heappop(self._heap)
            handle.fired = True
            handle.callback(*handle.args)
            fired += 1
        return fired

    def _drop_cancelled_head(self) -> None:
        while self._heap and not self._heap[0][2].pending:
            heapq.heappop(self._heap)
