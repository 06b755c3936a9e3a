"""Video Input Handler - Reads frames from a video file for testing.

Implements the FrameSource protocol, same interface as CameraHandler.
Used when the --video flag is passed to the node.
"""
from pathlib import Path

import cv2

from Handlers.Camera_Handler import CameraHandler
from utils.logger import Logger


class VideoInputHandler(CameraHandler):
    """Frame source backed by a video file instead of a live device.

    The end of the file surfaces as a CaptureError, like a dropped camera.
    """

    def __init__(self, video_path: str):
        """
        Args:
            video_path: Path to the video file.
        """
        super().__init__({})
        self.video_path = video_path
        self.logger = Logger("VideoInputHandler")

    @property
    def source_name(self) -> str:
        return f"video {self.video_path}"

    def start(self) -> bool:
        """Open the video file for reading."""
        if not Path(self.video_path).exists():
            self.logger.error(f"Video file not found: {self.video_path}")
            return False
        return super().start()

    def _open_capture(self) -> cv2.VideoCapture:
        return cv2.VideoCapture(str(self.video_path))

    def _configure(self, cap: cv2.VideoCapture) -> None:
        # Files carry their own geometry and frame rate
        pass

    def _warm_up(self, cap: cv2.VideoCapture) -> bool:
        # The first capture returns the first frame of the file
        return True
