"""
Save scheduling — immediate vs debounced persistence.

Structural changes are written at once. Free-text edits are debounced: each
new edit restarts the quiet period and replaces the pending payload, so a
burst of keystrokes becomes a single write of the last value.

The scheduler owns no timer thread. The owner calls ``poll()`` whenever it
gets control (every request, every ingest tick) and the pending write goes
out once its quiet period has elapsed. ``flush()`` forces it out early.

Usage:
    scheduler = SaveScheduler(history.commit, debounce_seconds=2.0)
    scheduler.submit(raw, debounce=True)    # held
    scheduler.poll()                        # written once quiet
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.0


class SaveScheduler:
    """Coalesces debounced writes and passes immediate writes straight through.

    ``sink(raw, debounce=bool)`` performs the actual write and returns a
    truthy value when it succeeded.
    """

    def __init__(
        self,
        sink: Callable[..., bool],
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._sink = sink
        self.debounce_seconds = debounce_seconds
        self._clock = clock
        self._pending: str | None = None
        self._due_at: float | None = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def due_at(self) -> float | None:
        return self._due_at

    def submit(self, raw: str, *, debounce: bool) -> bool:
        """Queue (debounce=True) or write (debounce=False) a serialized snapshot.

        An immediate write supersedes any pending debounced one: it carries
        the current canonical content, which already contains that edit.
        """
        if debounce:
            self._pending = raw
            self._due_at = self._clock() + self.debounce_seconds
            return False
        if self._pending is not None:
            logger.debug("Immediate save supersedes pending debounced save")
        self._clear()
        return bool(self._sink(raw, debounce=False))

    def poll(self) -> bool:
        """Write the pending payload if its quiet period is over."""
        if self._pending is None or self._clock() < self._due_at:
            return False
        return self.flush()

    def flush(self) -> bool:
        """Write the pending payload now, if there is one."""
        if self._pending is None:
            return False
        raw = self._pending
        self._clear()
        return bool(self._sink(raw, debounce=True))

    def cancel(self) -> bool:
        """Drop the pending payload (it belongs to a stale edit)."""
        if self._pending is None:
            return False
        logger.debug("Cancelled pending debounced save")
        self._clear()
        return True

    def _clear(self) -> None:
        self._pending = None
        self._due_at = None
