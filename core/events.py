"""
Typed message definitions for the ImageCarver pipeline.

Pipeline messages (RawFrame, Envelope) flow from the frame source through
the encoder into the hand-off queue. Bus events report the outcome of
capture and delivery cycles to whoever supervises the node.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
import time
import xml.etree.ElementTree as ET

import numpy as np

from utils.constants import (UINT32_MAX, XML_ROOT, XML_TIMESTAMP,
                             XML_DATETIME, XML_IMAGE)


# ─── Pipeline Messages ───────────────────────────────────────────────────

@dataclass(frozen=True, eq=False)
class RawFrame:
    """
    A captured frame snapshot.

    The image is a private copy of the device buffer, so it stays valid
    after the source is read again.
    """
    image: np.ndarray
    timestamp_ms: float
    captured_at: datetime = field(default_factory=datetime.now)

    def __repr__(self) -> str:
        shape = getattr(self.image, "shape", None)
        return f"RawFrame(timestamp_ms={self.timestamp_ms}, shape={shape})"


@dataclass(frozen=True)
class Envelope:
    """Immutable document bundling a JPEG image with its capture times."""
    timestamp_ms: int
    wall_clock: str
    payload: str

    def __post_init__(self):
        if isinstance(self.timestamp_ms, bool) or not isinstance(self.timestamp_ms, int):
            raise ValueError(f"timestamp_ms must be an int, got {type(self.timestamp_ms).__name__}")
        if not 0 <= self.timestamp_ms <= UINT32_MAX:
            raise ValueError(f"timestamp_ms out of uint32 range: {self.timestamp_ms}")

    def to_xml(self) -> bytes:
        """Serialize to the ImageData XML document (UTF-8, indented)."""
        root = ET.Element(XML_ROOT)
        ET.SubElement(root, XML_TIMESTAMP).text = str(self.timestamp_ms)
        ET.SubElement(root, XML_DATETIME).text = self.wall_clock
        ET.SubElement(root, XML_IMAGE).text = self.payload
        ET.indent(root, space="  ")
        return ET.tostring(root, encoding="UTF-8", xml_declaration=True)

    def __repr__(self) -> str:
        return (
            f"Envelope(timestamp_ms={self.timestamp_ms}, "
            f"wall_clock={self.wall_clock!r}, payload_len={len(self.payload)})"
        )


# ─── Event Bus Events ────────────────────────────────────────────────────

@dataclass
class CaptureCompleted:
    """Published when a capture cycle enqueued a new Envelope."""
    timestamp_ms: int
    queue_length: int = 0
    timestamp: float = field(default_factory=time.time)


@dataclass
class CaptureFailed:
    """Published when a capture cycle aborted (capture or encode failure)."""
    reason: str
    error_type: str = ""
    timestamp: float = field(default_factory=time.time)


@dataclass
class EnvelopeDelivered:
    """Published after the collector confirmed an Envelope and it left the queue."""
    timestamp_ms: int
    status_code: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class DeliveryFailed:
    """Published when a delivery attempt failed; the Envelope stays queued."""
    timestamp_ms: int
    reason: str
    status_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ShutdownRequested:
    """Published to signal a graceful shutdown of all components."""
    reason: str = "user"
    timestamp: float = field(default_factory=time.time)
