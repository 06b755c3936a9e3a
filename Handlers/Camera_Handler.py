"""
Camera Handler - Serialized frame capture from a V4L/OpenCV video device.

Implements the FrameSource protocol. Only one capture may touch the device
at a time; the lock covers the read alone, callers encode outside it.
"""
import threading
from datetime import datetime
from typing import Optional

import cv2
import numpy as np

from core.events import RawFrame
from utils.constants import (DEFAULT_CAMERA_CHANNEL, DEFAULT_CAMERA_FPS,
                             DEFAULT_CAMERA_WIDTH, DEFAULT_CAMERA_HEIGHT,
                             DEFAULT_CAMERA_FOURCC)
from utils.failures import CaptureError
from utils.logger import Logger


class CameraHandler:
    """Handles interaction with the capture device via cv2.VideoCapture.

    Implements the FrameSource protocol:
        start() -> bool
        capture() -> RawFrame
        stop() -> None
    """

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize the camera handler.

        Args:
            config: Camera-specific configuration subset
        """
        self.config = config or {}
        self.logger = Logger("CameraHandler")
        self.cap: Optional[cv2.VideoCapture] = None
        self.device_lock = threading.Lock()
        # Overwritten in place by every read
        self._frame_buffer: Optional[np.ndarray] = None

    @property
    def source_name(self) -> str:
        return f"camera {self.config.get('channel', DEFAULT_CAMERA_CHANNEL)}"

    # ── FrameSource protocol ──────────────────────────────────────────

    def start(self) -> bool:
        """Open and configure the device, then grab one warm-up frame."""
        with self.device_lock:
            if self.cap is not None:
                return True

            cap = self._open_capture()
            if cap is None or not cap.isOpened():
                self.logger.error(f"Failed to open {self.source_name}")
                if cap is not None:
                    cap.release()
                return False

            self._configure(cap)

            if not self._warm_up(cap):
                self.logger.error(f"Failed to open stream: warm-up grab on {self.source_name} failed")
                cap.release()
                return False

            self.cap = cap
            self.logger.info(f"Capture source ready: {self.source_name}")
            return True

    def capture(self) -> RawFrame:
        """
        Read one frame from the device.

        Raises:
            CaptureError: the source is not started, or the read failed or
                returned an empty frame.
        """
        with self.device_lock:
            if self.cap is None:
                raise CaptureError(f"{self.source_name} is not started")

            if self._frame_buffer is not None:
                ok, frame = self.cap.read(self._frame_buffer)
            else:
                ok, frame = self.cap.read()

            if not ok or frame is None or frame.size == 0:
                raise CaptureError(f"Failed to fetch frame from {self.source_name}")

            self._frame_buffer = frame
            snapshot = RawFrame(
                image=frame.copy(),
                timestamp_ms=self.cap.get(cv2.CAP_PROP_POS_MSEC),
                captured_at=datetime.now(),
            )

        self.logger.debug(f"Captured {snapshot!r}")
        return snapshot

    def stop(self) -> None:
        """Release the device. Safe to call more than once."""
        with self.device_lock:
            if self.cap is not None:
                self.cap.release()
                self.cap = None
                self._frame_buffer = None
                self.logger.info(f"{self.source_name} released")

    # ── Device setup ──────────────────────────────────────────────────

    def _open_capture(self) -> cv2.VideoCapture:
        channel = self.config.get('channel', DEFAULT_CAMERA_CHANNEL)
        # Numbers are device indices, anything else a device path or stream URL
        if isinstance(channel, str) and not channel.strip().isdigit():
            return cv2.VideoCapture(channel)
        return cv2.VideoCapture(int(channel))

    def _warm_up(self, cap: cv2.VideoCapture) -> bool:
        """Discard one frame so the first capture sees a settled exposure."""
        return cap.grab()

    def _configure(self, cap: cv2.VideoCapture) -> None:
        """Request frame rate, resolution and pixel format from the driver."""
        fps = self.config.get('fps', DEFAULT_CAMERA_FPS)
        width = self.config.get('width', DEFAULT_CAMERA_WIDTH)
        height = self.config.get('height', DEFAULT_CAMERA_HEIGHT)
        fourcc = self.config.get('fourcc', DEFAULT_CAMERA_FOURCC)

        cap.set(cv2.CAP_PROP_FPS, fps)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        if fourcc:
            if len(fourcc) != 4:
                self.logger.warning(f"Ignoring invalid FOURCC {fourcc!r}")
            else:
                cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*fourcc))

        self.logger.info(f"Requested {width}x{height} @ {fps}fps, format {fourcc or 'default'}")
