"""Multi-producer, single-consumer FIFO channel between stages.

Semantics:
- `channel()` returns a connected (Sender, Receiver) pair
- `Sender.clone()` adds another producer; every sender must be closed
- when the last sender closes, the receiver's iteration ends after it has
  yielded everything queued before that point
- closing the receiver discards queued items; sending afterwards raises
  ChannelClosed

Unbounded: `send` never blocks. Receiving blocks until an item or
end-of-stream arrives.
"""

from __future__ import annotations
import queue
import threading
from typing import Generic, Iterator, Optional, Tuple, TypeVar

from ..errors import ChannelClosed

T = TypeVar("T")

_END = object()


class _ChannelState:
    def __init__(self) -> None:
        self.queue: "queue.Queue[object]" = queue.Queue()
        self.lock = threading.Lock()
        self.senders = 0
        self.receiver_closed = False
        self.finished = False


class Sender(Generic[T]):
    def __init__(self, state: _ChannelState):
        self._state = state
        self._closed = False
        with state.lock:
            state.senders += 1

    def send(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed("send on a closed sender")
        state = self._state
        with state.lock:
            if state.receiver_closed:
                raise ChannelClosed("receiver has been closed")
            state.queue.put(item)

    def clone(self) -> "Sender[T]":
        if self._closed:
            raise ChannelClosed("cannot clone a closed sender")
        return Sender(self._state)

    def close(self) -> None:
        """Drop this sender. Idempotent."""
        if self._closed:
            return
        self._closed = True
        state = self._state
        with state.lock:
            state.senders -= 1
            last = state.senders == 0
        if last:
            state.queue.put(_END)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "Sender[T]":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class Receiver(Generic[T]):
    def __init__(self, state: _ChannelState):
        self._state = state

    def recv(self, timeout: Optional[float] = None) -> T:
        """Return the next item; raises ChannelClosed at end-of-stream.

        `queue.Empty` propagates when `timeout` elapses.
        """
        state = self._state
        if state.finished:
            raise ChannelClosed("end of stream")
        item = state.queue.get(timeout=timeout)
        if item is _END:
            state.finished = True
            raise ChannelClosed("end of stream")
        return item  # type: ignore[return-value]

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.recv()
            except ChannelClosed:
                return

    def close(self) -> None:
        """Stop accepting items and discard whatever is still queued."""
        state = self._state
        with state.lock:
            state.receiver_closed = True
            state.finished = True
            while True:
                try:
                    state.queue.get_nowait()
                except queue.Empty:
                    break

    def pending(self) -> int:
        return self._state.queue.qsize()


def channel() -> Tuple[Sender, Receiver]:
    state = _ChannelState()
    return Sender(state), Receiver(state)
