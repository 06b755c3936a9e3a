"""
Global constants for the ImageCarver node.
"""
from pathlib import Path

# Project Structure
BASE_DIR = Path(__file__).parent.parent
CONFIGS_DIR = BASE_DIR / "configs"

# Camera defaults (V4L device, 640x360 greyscale stream)
DEFAULT_CAMERA_CHANNEL = 1
DEFAULT_CAMERA_FPS = 30
DEFAULT_CAMERA_WIDTH = 640
DEFAULT_CAMERA_HEIGHT = 360
DEFAULT_CAMERA_FOURCC = "Y800"

# Encoder
DEFAULT_JPEG_QUALITY = 90
UINT32_MAX = 0xFFFFFFFF

# Document schema
XML_ROOT = "ImageData"
XML_TIMESTAMP = "Timestamp"
XML_DATETIME = "DateTime"
XML_IMAGE = "ImageBase64"
XML_CONTENT_TYPE = "application/xml"
DATETIME_FORMAT = "%Y%m%d %H%M%S"

# Network Settings
DEFAULT_TIMEOUT = 15.0

# Pipeline
DEFAULT_CAPTURE_WORKERS = 2

# Exit codes
EXIT_OK = 0
EXIT_DELIVERY_FAILED = 1
EXIT_STARTUP_FAILED = 2
