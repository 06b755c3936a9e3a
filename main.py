"""
ImageCarver Node - Entry Point

Producer/consumer pipeline:
    FrameSource → EnvelopeEncoder → [HandoffQueue] → HttpTransmitter
        (CaptureStage on a worker pool)    (DeliveryStage on the main thread)

One run triggers a capture cycle and performs one delivery cycle against
the destination URL given on the command line.
"""
import argparse
import signal
import sys
import threading
from typing import List, Optional

from utils.config import Config
from utils.constants import (DEFAULT_CAPTURE_WORKERS, DEFAULT_JPEG_QUALITY,
                             DEFAULT_TIMEOUT, EXIT_OK, EXIT_DELIVERY_FAILED,
                             EXIT_STARTUP_FAILED)
from utils.failures import ConfigError, FailureManager, TransmitError
from utils.logger import Logger, redact_url

from core.bus import EventBus
from core.encoder import EnvelopeEncoder
from core.events import CaptureFailed, ShutdownRequested
from core.handoff import HandoffQueue
from core.orchestrator import Orchestrator
from core.stages import CaptureStage, DeliveryStage
from Handlers.Http_Handler import HttpTransmitter


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="ImageCarver - capture a camera frame and POST it as XML"
    )
    parser.add_argument(
        'url',
        type=str,
        help='Destination URL of the collector'
    )
    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='Directory of JSON config files (defaults to ./configs)'
    )
    parser.add_argument(
        '--video', '-v',
        type=str,
        default=None,
        help='Path to video file for testing (bypasses camera)'
    )
    parser.add_argument(
        '--insecure',
        action='store_true',
        help='Skip TLS certificate verification of the collector'
    )
    parser.add_argument(
        '--timeout',
        type=float,
        default=None,
        help='Seconds to wait for a captured frame before giving up'
    )
    return parser.parse_args(argv)


class ImageCarverNode:
    """
    ImageCarver Node Orchestrator.

    Wires together:
      - the frame source (camera or video file) and the encoder
      - the hand-off queue and both pipeline stages
      - the HTTP transmitter, whose session lives as long as the node
      - the event bus and failure manager that observe cycle outcomes
    """

    def __init__(self, url: str, configs_dir: Optional[str] = None,
                 video_path: Optional[str] = None, insecure: bool = False):
        # ── 1. Foundation ────────────────────────────────────────────
        self.config = Config(configs_dir)
        self.config.set('network.server_url', url)
        if insecure:
            self.config.set('network.verify_tls', False)

        Logger.setup(self.config.get('logging', {}))
        self.logger = Logger("ImageCarverNode")

        self.url = (self.config.get('network.server_url') or '').strip()
        if not self.url:
            raise ConfigError("Destination URL is not configured", critical=True)

        self.bus = EventBus()
        self.failures = FailureManager(self.config.get('failures', {}))
        self.queue = HandoffQueue()

        # ── 2. Frame Source (Camera or Video) ────────────────────────
        if video_path:
            from Handlers.Video_Input_Handler import VideoInputHandler
            self.frame_source = VideoInputHandler(video_path)
            self.logger.info(f"Video test mode: {video_path}")
        else:
            from Handlers.Camera_Handler import CameraHandler
            self.frame_source = CameraHandler(self.config.get('camera', {}))

        # ── 3. Transport (opened once in start(), closed once in stop()) ─
        self.transmitter = HttpTransmitter(
            self.url,
            timeout=self.config.get_float('network.timeout', DEFAULT_TIMEOUT),
            verify_tls=self.config.get_bool('network.verify_tls', True),
        )

        # ── 4. Pipeline ──────────────────────────────────────────────
        try:
            encoder = EnvelopeEncoder(
                jpeg_quality=self.config.get_int('encoder.jpeg_quality', DEFAULT_JPEG_QUALITY)
            )
            self.orchestrator = Orchestrator(
                CaptureStage(self.frame_source, encoder, self.queue),
                DeliveryStage(self.queue, self.transmitter),
                bus=self.bus,
                failures=self.failures,
                workers=self.config.get_int('pipeline.capture_workers', DEFAULT_CAPTURE_WORKERS),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid pipeline setting: {e}", critical=True) from e

        self.bus.subscribe(ShutdownRequested, lambda e: self.stop())
        self._stopped = False

        self.logger.info(f"Initialized, delivering to {redact_url(self.url)}")

    def start(self) -> bool:
        """Open the frame source and the transport. Returns False if the source cannot start."""
        if not self.frame_source.start():
            self.logger.error("Frame source failed to start")
            return False
        self.transmitter.open()
        return True

    def run_once(self, timeout: Optional[float] = None) -> int:
        """
        Trigger one capture and run one delivery cycle.

        Args:
            timeout: Seconds to wait for an Envelope. When the capture fails
                the delivery cycle stops waiting immediately.

        Returns:
            A process exit code.
        """
        def _on_capture_failed(event: CaptureFailed):
            # Nothing will arrive, stop waiting once the queue drains
            capture_failed.set()

        capture_failed = threading.Event()
        unsubscribe = self.bus.subscribe(CaptureFailed, _on_capture_failed)

        capture = self.orchestrator.trigger_capture()

        try:
            result = self._deliver(capture_failed, timeout)
        except TransmitError as e:
            self.logger.error(f"Delivery failed, {len(self.queue)} Envelope(s) retained: {e.message}")
            return EXIT_DELIVERY_FAILED
        finally:
            unsubscribe()

        if result is None:
            error = capture.exception() if capture.done() else None
            self.logger.error(f"No frame to deliver: {error or 'capture timed out'}")
            return EXIT_DELIVERY_FAILED

        envelope, receipt = result
        self.logger.info(f"Frame t={envelope.timestamp_ms}ms delivered (HTTP {receipt.status_code})")
        return EXIT_OK

    def _deliver(self, capture_failed, timeout: Optional[float]):
        """Run delivery cycles in short slices so a failed capture ends the wait."""
        slice_seconds = 0.25
        waited = 0.0
        while True:
            result = self.orchestrator.run_one_delivery_cycle(timeout=slice_seconds)
            if result is not None:
                return result
            if self._stopped:
                return None
            if capture_failed.is_set() and len(self.queue) == 0:
                return None
            waited += slice_seconds
            if timeout is not None and waited >= timeout:
                return None

    def stop(self):
        """Gracefully shutdown all components. Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True

        self.logger.info("Stopping ImageCarver Node...")
        self.orchestrator.shutdown(wait=True)
        self.frame_source.stop()
        self.transmitter.close()
        self.bus.clear()

        if len(self.queue):
            self.logger.warning(f"{len(self.queue)} undelivered Envelope(s) discarded at shutdown")
        self.logger.info("ImageCarver Node stopped")

    def _setup_signal_handlers(self):
        def handler(signum, frame):
            self.logger.info(f"Signal {signum} received, shutting down")
            self.bus.publish(ShutdownRequested(reason=f"signal {signum}"))

        signal.signal(signal.SIGINT, handler)
        signal.signal(signal.SIGTERM, handler)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        node = ImageCarverNode(
            args.url,
            configs_dir=args.config,
            video_path=args.video,
            insecure=args.insecure,
        )
    except ConfigError as e:
        print(f"ImageCarver: {e.message}", file=sys.stderr)
        return EXIT_STARTUP_FAILED

    try:
        if not node.start():
            return EXIT_STARTUP_FAILED
        node._setup_signal_handlers()
        timeout = args.timeout
        if timeout is None:
            timeout = node.config.get_float('pipeline.delivery_timeout', None)
        return node.run_once(timeout=timeout)
    finally:
        node.stop()


if __name__ == "__main__":
    sys.exit(main())
