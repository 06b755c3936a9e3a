"""
Capture Stage - one capture → encode → enqueue cycle.

The source lock is held only while the frame is read; encoding works on
the frame's own copy. A failed capture or encode pushes nothing.
"""
from core.encoder import EnvelopeEncoder
from core.events import Envelope
from core.handoff import HandoffQueue
from core.protocols import FrameSource
from utils.logger import Logger


class CaptureStage:
    """
    Producer side of the pipeline.

    Reads a frame from any FrameSource, turns it into an Envelope and
    pushes it onto the hand-off queue.
    """

    def __init__(self, source: FrameSource, encoder: EnvelopeEncoder, queue: HandoffQueue):
        """
        Args:
            source: Any object implementing the FrameSource protocol.
            encoder: Turns RawFrames into Envelopes.
            queue: Hand-off queue shared with the DeliveryStage.
        """
        self.source = source
        self.encoder = encoder
        self.queue = queue
        self.logger = Logger("CaptureStage")

    def run_cycle(self) -> Envelope:
        """
        Capture, encode and enqueue a single frame.

        Returns:
            The Envelope that was pushed.

        Raises:
            CaptureError: the source could not deliver a frame.
            EncodeError: the frame could not be compressed.
        """
        raw = self.source.capture()
        envelope = self.encoder.encode(raw)
        self.queue.push(envelope)
        self.logger.info(
            f"Enqueued frame t={envelope.timestamp_ms}ms at {envelope.wall_clock} "
            f"(queue length {len(self.queue)})"
        )
        return envelope
