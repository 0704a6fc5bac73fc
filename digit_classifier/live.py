"""
Frame annotation and the live capture loop.

The capture source, display callback and stop condition are injected so the
loop can be driven by a webcam, a video file or a test double.
"""

import logging
from typing import Callable, List, Optional, Sequence

import cv2
import numpy as np

from .pipeline import Detection, Pipeline
from .segmentation import Roi

logger = logging.getLogger(__name__)

ROI_COLOR = (0, 0, 255)
TEXT_COLOR = (0, 0, 0)


def annotate_frame(frame: np.ndarray, detections: Sequence[Detection], roi: Optional[Roi] = None) -> np.ndarray:
    """Copy of the frame with the ROI, detection boxes and predicted digits drawn on it."""
    display = frame.copy()
    if display.ndim == 2:
        display = cv2.cvtColor(display, cv2.COLOR_GRAY2BGR)

    if roi is not None:
        cv2.rectangle(display, (roi.x, roi.y), (roi.x + roi.width, roi.y + roi.height), ROI_COLOR)

    for det in detections:
        x, y, w, h = det.region.bbox
        cv2.rectangle(display, (x, y), (x + w, y + h), det.color, 2)
        cv2.putText(display, str(det.digit), (x, y - 5), cv2.FONT_HERSHEY_PLAIN, 1.4, TEXT_COLOR)
    return display


def run_live(
    pipeline: Pipeline,
    source,
    on_frame: Callable[[np.ndarray, List[Detection]], None],
    should_stop: Callable[[], bool] = lambda: False,
    max_failures: int = 10,
) -> int:
    """
    Process frames from `source` until `should_stop` returns True.

    A failed read skips that frame; `max_failures` consecutive failures end
    the loop.

    Args:
        pipeline: configured two-stage pipeline
        source: object with a cv2.VideoCapture style read() -> (ok, frame)
        on_frame: receives every processed frame and its detections
        should_stop: polled after each processed frame
        max_failures: consecutive failed reads tolerated

    Returns:
        Number of frames processed
    """
    processed = 0
    failures = 0
    while True:
        ok, frame = source.read()
        if not ok or frame is None:
            failures += 1
            logger.warning("Failed to capture frame (%d/%d)", failures, max_failures)
            if failures >= max_failures:
                break
            continue
        failures = 0

        detections = pipeline.process(frame)
        on_frame(frame, detections)
        processed += 1

        if should_stop():
            break
    return processed
