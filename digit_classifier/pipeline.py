"""
Two-stage detect-then-classify pipeline over camera frames.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .classifier import TrainableClassifier
from .config import TASK_DETECTOR, TASK_DIGIT
from .errors import ConfigError, ModelStateError
from .segmentation import FrameSegmenter, Region

logger = logging.getLogger(__name__)


@dataclass
class Detection:
    """A region accepted by the detector and the digit predicted for it."""

    region: Region
    digit: int
    color: Tuple[int, int, int] = (0, 255, 0)   # BGR, display only


class Pipeline:
    """
    Segment a frame, keep regions the detector accepts, classify those.

    Both classifiers must already hold a model for their role. This is checked
    at construction and again for every frame, so reloading either one with a
    model of the wrong task fails instead of producing wrong digits.
    """

    def __init__(
        self,
        detector: TrainableClassifier,
        classifier: TrainableClassifier,
        segmenter: Optional[FrameSegmenter] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.detector = detector
        self.classifier = classifier
        self.check_models()
        self.segmenter = segmenter or FrameSegmenter()
        self.rng = rng or np.random.default_rng()

    def check_models(self):
        """Both classifiers hold a model and each one was trained for its role."""
        self._check_model(self.detector, TASK_DETECTOR, "detector")
        self._check_model(self.classifier, TASK_DIGIT, "classifier")

    @staticmethod
    def _check_model(clf: TrainableClassifier, task: str, role: str):
        if clf.model is None:
            raise ModelStateError(f"{role} has no trained or loaded model")
        if clf.model.task != task:
            raise ConfigError(f"{role} model was trained as {clf.model.task!r}, expected {task!r}")

    @classmethod
    def from_files(cls, detector_path, classifier_path, **kwargs) -> "Pipeline":
        """Load both models; any load failure propagates to the caller."""
        detector = TrainableClassifier.from_file(detector_path)
        classifier = TrainableClassifier.from_file(classifier_path)
        return cls(detector, classifier, **kwargs)

    def _random_color(self) -> Tuple[int, int, int]:
        b, g, r = self.rng.integers(0, 256, size=3)
        return int(b), int(g), int(r)

    def classify_region(self, region: Region) -> Optional[int]:
        """Digit for the region, or None when the detector rejects it."""
        self.check_models()
        return self._classify(region)

    def _classify(self, region: Region) -> Optional[int]:
        if self.detector.predict(region.image) <= 0:
            return None
        return self.classifier.predict(region.image)

    def process(self, frame: np.ndarray) -> List[Detection]:
        self.check_models()
        regions = self.segmenter.segment(frame)
        detections = []
        for region in regions:
            digit = self._classify(region)
            if digit is None:
                continue
            detections.append(Detection(region, digit, self._random_color()))

        logger.debug("Frame: %d regions, %d detections", len(regions), len(detections))
        return detections
