"""
Pipeline stages for the ImageCarver node.

    CaptureStage → [HandoffQueue] → DeliveryStage

The capture stage is the producer and runs on the orchestrator's worker
pool. The delivery stage is the single consumer and runs on the caller's
thread.
"""
from .capture import CaptureStage
from .delivery import DeliveryStage

__all__ = ["CaptureStage", "DeliveryStage"]
