"""
Orchestrator - drives the capture producer and the delivery consumer.

    trigger_capture()        → CaptureStage on a worker pool (returns a Future)
    run_one_delivery_cycle() → DeliveryStage on the calling thread

The two flows are independent: a delivery cycle may run before, during or
after any capture cycle. Capture outcomes are never dropped; each one is
published on the EventBus and failures are recorded in the FailureManager.
A Future is tracked only until it resolves.
"""
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import List, Optional, Tuple

from core.bus import EventBus
from core.events import (Envelope, CaptureCompleted, CaptureFailed,
                         EnvelopeDelivered, DeliveryFailed)
from core.protocols import DeliveryReceipt
from core.stages import CaptureStage, DeliveryStage
from utils.constants import DEFAULT_CAPTURE_WORKERS
from utils.failures import FailureManager, TransmitError
from utils.logger import Logger


class Orchestrator:
    """Schedules capture cycles and runs delivery cycles."""

    def __init__(
        self,
        capture_stage: CaptureStage,
        delivery_stage: DeliveryStage,
        bus: Optional[EventBus] = None,
        failures: Optional[FailureManager] = None,
        workers: int = DEFAULT_CAPTURE_WORKERS,
    ):
        """
        Args:
            capture_stage: Producer cycle (capture → encode → push).
            delivery_stage: Consumer cycle (pop → send → acknowledge).
            bus: Receives outcome events; a private bus is created if omitted.
            failures: Records failed cycles; a private one is created if omitted.
            workers: Size of the capture worker pool.
        """
        if workers < 1:
            raise ValueError("workers must be >= 1")

        self.capture_stage = capture_stage
        self.delivery_stage = delivery_stage
        self.bus = bus or EventBus()
        self.failures = failures or FailureManager()
        self.logger = Logger("Orchestrator")

        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="Capture")
        self._pending: List[Future] = []
        self._lock = threading.Lock()
        self._closed = False

    # ── Capture (producer) ──────────────────────────────────────────

    def trigger_capture(self) -> "Future[Envelope]":
        """
        Schedule one capture cycle and return immediately.

        The caller may ignore the returned Future; the outcome is still
        reported through the bus and the failure manager.

        Raises:
            RuntimeError: the orchestrator has been shut down.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Orchestrator is shut down")
            future = self._executor.submit(self._run_capture_cycle)
            self._pending.append(future)
        # Outside the lock: an already finished Future runs the callback inline
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            if future in self._pending:
                self._pending.remove(future)

    def _run_capture_cycle(self) -> Envelope:
        # Report before the Future resolves, so waiters see the events too
        try:
            envelope = self.capture_stage.run_cycle()
        except Exception as e:
            self.failures.record_failure(e)
            self.bus.publish(CaptureFailed(reason=str(e), error_type=type(e).__name__))
            raise

        self.bus.publish(CaptureCompleted(
            timestamp_ms=envelope.timestamp_ms,
            queue_length=len(self.delivery_stage.queue),
        ))
        return envelope

    def wait_for_captures(self, timeout: Optional[float] = None) -> List[Future]:
        """
        Wait for the capture cycles still in flight to finish.

        Args:
            timeout: Seconds to wait. None waits for all of them.

        Returns:
            The Futures in flight at call time that have completed.
        """
        with self._lock:
            pending = list(self._pending)

        done, _ = wait_futures(pending, timeout=timeout)
        return [f for f in pending if f in done]

    @property
    def pending_captures(self) -> int:
        with self._lock:
            return sum(1 for f in self._pending if not f.done())

    # ── Delivery (consumer) ─────────────────────────────────────────

    def run_one_delivery_cycle(
        self, timeout: Optional[float] = None
    ) -> Optional[Tuple[Envelope, DeliveryReceipt]]:
        """
        Run one blocking dequeue-and-send cycle on the calling thread.

        Args:
            timeout: Seconds to wait for an Envelope. None waits forever.

        Returns:
            (envelope, receipt) when delivered, None when nothing arrived in time.

        Raises:
            TransmitError: delivery failed; the Envelope is retained at the head.
        """
        try:
            result = self.delivery_stage.run_cycle(timeout=timeout)
        except TransmitError as e:
            self.failures.record_failure(e)
            attempted = self.delivery_stage.last_attempted
            self.bus.publish(DeliveryFailed(
                timestamp_ms=attempted.timestamp_ms if attempted is not None else 0,
                reason=e.message,
                status_code=e.status_code,
            ))
            raise

        if result is not None:
            envelope, receipt = result
            self.bus.publish(EnvelopeDelivered(
                timestamp_ms=envelope.timestamp_ms,
                status_code=receipt.status_code,
            ))
        return result

    # ── Lifecycle ───────────────────────────────────────────────────

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting captures and release the worker pool. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait)
        self.logger.info("Orchestrator stopped")

    def __enter__(self) -> "Orchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
