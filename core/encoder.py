"""
Envelope Encoder - turns a RawFrame into an immutable Envelope.

Pure transformation: JPEG compression, base64 text, wall-clock formatting.
The wall clock is taken from the frame itself, so encoding the same
RawFrame twice gives identical Envelopes.
"""
import base64
import math
from datetime import datetime

import cv2
import numpy as np

from core.events import RawFrame, Envelope
from utils.constants import DATETIME_FORMAT, DEFAULT_JPEG_QUALITY, UINT32_MAX
from utils.failures import EncodeError


def format_wall_clock(moment: datetime) -> str:
    """Format as ``YYYYMMDD HHMMSS`` followed by three millisecond digits."""
    return f"{moment.strftime(DATETIME_FORMAT)}{moment.microsecond // 1000:03d}"


def to_uint32(timestamp_ms: float) -> int:
    """Coerce a device time to uint32; negative or NaN become 0, overflow wraps."""
    if timestamp_ms is None or math.isnan(timestamp_ms) or timestamp_ms < 0:
        return 0
    if math.isinf(timestamp_ms):
        return UINT32_MAX
    return int(timestamp_ms) & UINT32_MAX


class EnvelopeEncoder:
    """Compresses frames to JPEG and wraps them with their timestamps."""

    def __init__(self, jpeg_quality: int = DEFAULT_JPEG_QUALITY):
        """
        Args:
            jpeg_quality: OpenCV JPEG quality, 0-100.
        """
        if not 0 <= jpeg_quality <= 100:
            raise ValueError(f"jpeg_quality must be within 0..100, got {jpeg_quality}")
        self.jpeg_quality = jpeg_quality

    def compress(self, image: np.ndarray) -> bytes:
        """JPEG-encode an image, raising EncodeError instead of returning garbage."""
        if not isinstance(image, np.ndarray):
            raise EncodeError(f"Cannot compress {type(image).__name__}, expected ndarray")
        try:
            ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        except cv2.error as e:
            raise EncodeError(f"JPEG compression failed: {e}") from e
        if not ok or buffer is None or buffer.size == 0:
            raise EncodeError("JPEG compression produced no output")
        return buffer.tobytes()

    def encode(self, raw: RawFrame) -> Envelope:
        """
        Build an Envelope from a captured frame.

        Raises:
            EncodeError: compression failed (empty or malformed image).
        """
        jpeg = self.compress(raw.image)
        return Envelope(
            timestamp_ms=to_uint32(raw.timestamp_ms),
            wall_clock=format_wall_clock(raw.captured_at),
            payload=base64.b64encode(jpeg).decode("ascii"),
        )
