"""
Candidate digit regions in a camera frame.

Assumes dark ink on a light background. The frame is smoothed, inverted into
a binary foreground mask, cleaned outside a centered region of interest and
closed; every outer contour inside the ROI becomes one Region.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np

from .config import BACKGROUND, DEFAULTS, FOREGROUND
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class Region:
    """Bounding box in full-frame coordinates plus the padded crop."""

    x: int
    y: int
    width: int
    height: int
    image: np.ndarray

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height


@dataclass(frozen=True)
class Roi:
    x: int
    y: int
    width: int
    height: int

    @property
    def corners(self) -> List[Tuple[int, int]]:
        """Top-left, bottom-left, bottom-right, top-right as (x, y)."""
        right = self.x + self.width
        bottom = self.y + self.height
        return [(self.x, self.y), (self.x, bottom), (right, bottom), (right, self.y)]


def central_roi(frame_shape: Tuple[int, ...], fraction: float) -> Roi:
    """Centered rectangle covering `fraction` of the frame width and height."""
    rows, cols = frame_shape[:2]
    return Roi(
        x=int(cols * (1 - fraction) / 2.0),
        y=int(rows * (1 - fraction) / 2.0),
        width=int(cols * fraction),
        height=int(rows * fraction),
    )


def pad_amount(size: int, ratio: float) -> int:
    return int(round(size * ratio))


def pad_region(image: np.ndarray, ratio: float) -> np.ndarray:
    """Add a background border of round(ratio * size) pixels on each side."""
    hpad = pad_amount(image.shape[0], ratio)
    wpad = pad_amount(image.shape[1], ratio)
    return cv2.copyMakeBorder(image, hpad, hpad, wpad, wpad, cv2.BORDER_CONSTANT, value=BACKGROUND)


class FrameSegmenter:
    """
    Split a frame into candidate digit regions.

    Regions come out in the order cv2.findContours reports the outer
    contours, which is deterministic for identical input.
    """

    def __init__(self, params: Optional[Dict] = None):
        p = DEFAULTS.copy()
        if params:
            unknown = set(params) - set(DEFAULTS)
            if unknown:
                raise ConfigError(f"unknown segmenter parameters: {sorted(unknown)}")
            p.update(params)
        self.params = p
        self._validate()

    def _validate(self):
        p = self.params
        if not 0 < p["roi_fraction"] <= 1:
            raise ConfigError(f"roi_fraction must be in (0, 1], got {p['roi_fraction']}")
        for name in ("blur_kernel", "close_kernel"):
            if p[name] < 1 or p[name] % 2 == 0:
                raise ConfigError(f"{name} must be a positive odd integer, got {p[name]}")
        if not 0 <= p["threshold"] <= 255:
            raise ConfigError(f"threshold must be within 0..255, got {p['threshold']}")
        if p["pad_ratio"] < 0:
            raise ConfigError(f"pad_ratio must not be negative, got {p['pad_ratio']}")

    def roi_for(self, frame: np.ndarray) -> Roi:
        return central_roi(frame.shape, self.params["roi_fraction"])

    def preprocess(self, frame: np.ndarray) -> Tuple[np.ndarray, Roi]:
        """Binary foreground mask of the frame and the ROI used to clean it."""
        p = self.params

        # 1) 8-bit grayscale + box blur against sensor noise
        gray = np.asarray(frame)
        if gray.dtype != np.uint8:
            gray = np.clip(gray, 0, 255).astype(np.uint8)
        if gray.ndim == 3:
            gray = cv2.cvtColor(gray, cv2.COLOR_BGR2GRAY)
        else:
            gray = gray.copy()
        gray = cv2.blur(gray, (p["blur_kernel"], p["blur_kernel"]))

        # 2) Dark ink -> foreground
        _, mask = cv2.threshold(gray, p["threshold"], FOREGROUND, cv2.THRESH_BINARY_INV)

        # 3) + 4) Flood the ROI corners with background to drop noise reaching in from the edges
        roi = self.roi_for(mask)
        rows, cols = mask.shape
        for cx, cy in roi.corners:
            seed = (min(cx, cols - 1), min(cy, rows - 1))
            cv2.floodFill(mask, None, seed, BACKGROUND)

        # 5) Close small gaps in strokes
        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (p["close_kernel"], p["close_kernel"]))
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel)
        return mask, roi

    def segment(self, frame: np.ndarray) -> List[Region]:
        mask, roi = self.preprocess(frame)

        # 6) Outer contours inside the ROI only
        roi_mask = mask[roi.y:roi.y + roi.height, roi.x:roi.x + roi.width].copy()
        contours, _ = cv2.findContours(roi_mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        # 7) Crop from the full mask and pad like the training corpus
        regions = []
        for contour in contours:
            x, y, w, h = cv2.boundingRect(contour)
            x += roi.x
            y += roi.y
            crop = mask[y:y + h, x:x + w].copy()
            regions.append(Region(x, y, w, h, pad_region(crop, self.params["pad_ratio"])))

        logger.debug("Segmented %d candidate regions", len(regions))
        return regions
