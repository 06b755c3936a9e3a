"""
Hand-off Queue between the capture producer and the delivery consumer.

Unbounded FIFO of Envelopes. The consumer observes the head with
pop_blocking(), attempts delivery, and only then removes it with
acknowledge(). A failed attempt simply skips the acknowledge, leaving
the Envelope at the head for the next cycle.

Peek and remove are separate calls, so this is only correct with a
single consumer. Two consumers could both observe the same head and
deliver it twice.
"""
import threading
from collections import deque
from typing import Deque, Optional, Tuple

from core.events import Envelope
from utils.failures import HandoffError
from utils.logger import Logger


class HandoffQueue:
    """
    Thread-safe FIFO with blocking peek and explicit acknowledge.

    Usage:
        queue = HandoffQueue()
        queue.push(envelope)            # producer, never blocks

        head = queue.pop_blocking()     # consumer, waits until non-empty
        transmitter.send(head)          # may raise TransmitError
        queue.acknowledge(head)         # only after confirmed delivery
    """

    def __init__(self):
        self._items: Deque[Envelope] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self.logger = Logger("HandoffQueue")

    def push(self, envelope: Envelope) -> None:
        """Append to the tail and wake at most one waiting consumer."""
        with self._not_empty:
            self._items.append(envelope)
            self._not_empty.notify()
        self.logger.debug(f"Pushed {envelope!r}")

    def pop_blocking(self, timeout: Optional[float] = None) -> Optional[Envelope]:
        """
        Return the head without removing it, waiting until one exists.

        Args:
            timeout: Seconds to wait. None waits forever.

        Returns:
            The head Envelope, or None if the timeout expired first.
        """
        with self._not_empty:
            if not self._not_empty.wait_for(lambda: len(self._items) > 0, timeout=timeout):
                return None
            return self._items[0]

    def acknowledge(self, envelope: Optional[Envelope] = None) -> Envelope:
        """
        Remove the head after its delivery was confirmed.

        Args:
            envelope: The Envelope returned by the last pop_blocking(). When
                given, it must still be the head.

        Returns:
            The removed Envelope.

        Raises:
            HandoffError: the queue is empty or the head is a different item.
        """
        with self._lock:
            if not self._items:
                raise HandoffError("acknowledge() called on an empty queue")
            if envelope is not None and self._items[0] is not envelope:
                raise HandoffError("acknowledged Envelope is not the queue head")
            removed = self._items.popleft()
        self.logger.debug(f"Acknowledged {removed!r}")
        return removed

    def snapshot(self) -> Tuple[Envelope, ...]:
        """Copy of the pending Envelopes, head first."""
        with self._lock:
            return tuple(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
