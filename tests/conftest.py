"""
Test Configuration
==================

Pytest fixtures and in-memory fakes for the ImageCarver pipeline.
Nothing here touches a camera or the network.
"""
import threading
from datetime import datetime
from typing import List, Optional

import numpy as np
import pytest

from core.events import Envelope, RawFrame
from core.protocols import DeliveryReceipt
from utils.failures import CaptureError, TransmitError


class FakeSource:
    """FrameSource that replays a scripted list of frames (None = empty read)."""

    def __init__(self, frames: Optional[List[Optional[np.ndarray]]] = None):
        self.frames = list(frames or [])
        self.lock = threading.Lock()
        self.captures = 0
        self.started = False

    def start(self) -> bool:
        self.started = True
        return True

    def capture(self) -> RawFrame:
        with self.lock:
            self.captures += 1
            frame = self.frames.pop(0) if self.frames else None
            if frame is None or frame.size == 0:
                raise CaptureError("Failed to fetch frame.")
            return RawFrame(
                image=frame.copy(),
                timestamp_ms=1000.0 + 50 * (self.captures - 1),
                captured_at=datetime(2026, 10, 19, 14, 30, 15, 123000),
            )

    def stop(self) -> None:
        self.started = False


class FakeTransmitter:
    """Transmitter whose outcome per attempt is scripted (True = success)."""

    def __init__(self, outcomes: Optional[List[bool]] = None):
        self.outcomes = list(outcomes or [])
        self.sent: List[Envelope] = []

    def send(self, envelope: Envelope) -> DeliveryReceipt:
        self.sent.append(envelope)
        ok = self.outcomes.pop(0) if self.outcomes else True
        if not ok:
            raise TransmitError("collector unreachable", status_code=503)
        return DeliveryReceipt(status_code=200, elapsed_ms=1.0)


@pytest.fixture
def make_envelope():
    """Factory for small Envelopes."""
    def _make(timestamp_ms: int = 1000, payload: str = "AAA=") -> Envelope:
        return Envelope(
            timestamp_ms=timestamp_ms,
            wall_clock="20261019 143015123",
            payload=payload,
        )
    return _make


@pytest.fixture
def gray_image():
    """A 360x640 single-channel test image with a gradient."""
    row = np.linspace(0, 255, 640, dtype=np.uint8)
    return np.tile(row, (360, 1))


@pytest.fixture
def raw_frame(gray_image):
    return RawFrame(
        image=gray_image,
        timestamp_ms=1000.0,
        captured_at=datetime(2026, 10, 19, 14, 30, 15, 123456),
    )


@pytest.fixture
def fake_source():
    """Factory: fake_source([frame, None, ...]) -> FakeSource."""
    return FakeSource


@pytest.fixture
def fake_transmitter():
    """Factory: fake_transmitter([True, False, ...]) -> FakeTransmitter."""
    return FakeTransmitter
