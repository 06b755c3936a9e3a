"""
Protocol definitions (interfaces) for the ImageCarver node.

These define the contracts that adapters must implement,
enabling dependency injection and easy testing/swapping.
"""
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from core.events import RawFrame, Envelope


@dataclass(frozen=True)
class DeliveryReceipt:
    """Confirmation returned by a Transmitter for one successful attempt."""
    status_code: int
    elapsed_ms: float = 0.0


@runtime_checkable
class FrameSource(Protocol):
    """Interface for any frame-producing component (camera, video file, etc.)."""

    def start(self) -> bool:
        """Initialize and begin frame acquisition. Returns True on success."""
        ...

    def capture(self) -> RawFrame:
        """
        Read one frame under the source's exclusive lock.

        Returns:
            A RawFrame holding its own copy of the image.

        Raises:
            CaptureError: the read failed or produced an empty frame.
        """
        ...

    def stop(self) -> None:
        """Release resources and stop frame acquisition."""
        ...


@runtime_checkable
class Transmitter(Protocol):
    """Interface for delivering an Envelope to the remote collector."""

    def send(self, envelope: Envelope) -> DeliveryReceipt:
        """
        Perform exactly one delivery attempt.

        Returns:
            A DeliveryReceipt when the collector accepted the document.

        Raises:
            TransmitError: connection failure or non-success status.
        """
        ...
