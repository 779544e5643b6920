"""Turn D-Bus signal callbacks into lazy iterators.

dbus-python delivers signals by invoking callbacks from the GLib main
context.  :class:`SignalStream` queues whatever those callbacks push and hands
items out one at a time, dispatching the main context while it waits.  Every
other pending source on the same context (other streams, fd watches, timers)
keeps being serviced during that wait.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Generic, List, Optional, TypeVar

from gi.repository import GLib

from bandlink.core.log import print_and_log, LOG__DEBUG

__all__ = ["SignalStream", "main_context_pump"]

T = TypeVar("T")


def main_context_pump(context: Optional[GLib.MainContext] = None) -> Callable[[], None]:
    """Return a callable that blocks until one GLib event has been dispatched."""
    ctx = context or GLib.MainContext.default()

    def _pump() -> None:
        ctx.iteration(True)

    return _pump


class SignalStream(Generic[T]):
    """Single-consumer, non-restartable iterator fed by signal callbacks."""

    def __init__(self, name: str, pump: Optional[Callable[[], None]] = None):
        self.name = name
        self._queue: Deque[T] = deque()
        self._matches: List[Any] = []
        self._closed = False
        self._pump = pump or main_context_pump()

    # Producer side -------------------------------------------------------
    def add_match(self, match) -> None:
        """Keep a ``SignalMatch`` so :meth:`close` can remove it."""
        self._matches.append(match)

    def push(self, item: T) -> None:
        if not self._closed:
            self._queue.append(item)

    # Consumer side -------------------------------------------------------
    def __iter__(self) -> "SignalStream[T]":
        return self

    def __next__(self) -> T:
        while not self._queue:
            if self._closed:
                raise StopIteration
            self._pump()
        return self._queue.popleft()

    def drain(self) -> List[T]:
        """Return everything queued so far without dispatching the context."""
        items = list(self._queue)
        self._queue.clear()
        return items

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop listening; already queued items can still be drained."""
        if self._closed:
            return
        self._closed = True
        for match in self._matches:
            match.remove()
        self._matches.clear()
        print_and_log(f"[DEBUG] Signal stream '{self.name}' closed", LOG__DEBUG)

    def __enter__(self) -> "SignalStream[T]":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
