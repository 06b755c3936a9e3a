"""
Delivery Stage - one blocking dequeue-and-send cycle.

The head Envelope is observed, sent once, and removed only after the
transmitter confirms it. On failure the Envelope stays at the head and
the TransmitError goes back to the caller, who decides about retrying.
"""
from typing import Optional, Tuple

from core.events import Envelope
from core.handoff import HandoffQueue
from core.protocols import Transmitter, DeliveryReceipt
from utils.logger import Logger


class DeliveryStage:
    """Consumer side of the pipeline. Single consumer only."""

    def __init__(self, queue: HandoffQueue, transmitter: Transmitter):
        """
        Args:
            queue: Hand-off queue fed by the CaptureStage.
            transmitter: Any object implementing the Transmitter protocol.
        """
        self.queue = queue
        self.transmitter = transmitter
        self.logger = Logger("DeliveryStage")
        self.last_attempted: Optional[Envelope] = None

    def run_cycle(self, timeout: Optional[float] = None) -> Optional[Tuple[Envelope, DeliveryReceipt]]:
        """
        Wait for the head Envelope and attempt its delivery once.

        Args:
            timeout: Seconds to wait for an Envelope. None waits forever.

        Returns:
            (envelope, receipt) on success, or None if nothing arrived in time.

        Raises:
            TransmitError: the attempt failed; the Envelope is still queued.
        """
        envelope = self.queue.pop_blocking(timeout=timeout)
        if envelope is None:
            self.logger.debug(f"No Envelope queued within {timeout}s")
            return None

        self.last_attempted = envelope
        # A TransmitError propagates with the Envelope still at the head
        receipt = self.transmitter.send(envelope)

        self.queue.acknowledge(envelope)
        self.logger.debug(f"Delivered t={envelope.timestamp_ms}ms (queue length {len(self.queue)})")
        return envelope, receipt
