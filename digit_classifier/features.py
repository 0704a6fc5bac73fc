"""
HOG feature extraction shared by training and live classification.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

import cv2
import numpy as np
from tqdm import tqdm

from .config import HOG_BLOCK_SIZE, HOG_BLOCK_STRIDE, HOG_CELL_SIZE, HOG_NBINS, HOG_WIN_SIZE
from .errors import ConfigError


@dataclass(frozen=True)
class FeatureConfig:
    """HOG geometry, all sizes as (width, height) in pixels."""

    win_size: Tuple[int, int] = HOG_WIN_SIZE
    block_size: Tuple[int, int] = HOG_BLOCK_SIZE
    block_stride: Tuple[int, int] = HOG_BLOCK_STRIDE
    cell_size: Tuple[int, int] = HOG_CELL_SIZE
    nbins: int = HOG_NBINS

    def validate(self):
        for name in ("win_size", "block_size", "block_stride", "cell_size"):
            size = getattr(self, name)
            if len(size) != 2 or min(size) <= 0:
                raise ConfigError(f"{name} must be two positive integers, got {size}")
        if self.nbins < 1:
            raise ConfigError(f"nbins must be positive, got {self.nbins}")

        for axis in (0, 1):
            if self.block_size[axis] % self.cell_size[axis]:
                raise ConfigError("block_size must be a multiple of cell_size")
            if self.block_size[axis] > self.win_size[axis]:
                raise ConfigError("block_size must fit inside win_size")
            if (self.win_size[axis] - self.block_size[axis]) % self.block_stride[axis]:
                raise ConfigError("win_size - block_size must be a multiple of block_stride")

    @property
    def descriptor_size(self) -> int:
        blocks_x = (self.win_size[0] - self.block_size[0]) // self.block_stride[0] + 1
        blocks_y = (self.win_size[1] - self.block_size[1]) // self.block_stride[1] + 1
        cells_per_block = (self.block_size[0] // self.cell_size[0]) * (self.block_size[1] // self.cell_size[1])
        return blocks_x * blocks_y * cells_per_block * self.nbins


class FeatureExtractor:
    """
    Histogram of oriented gradients over a fixed window.

    Input images of any size are resized to the window, gradients are binned
    into unsigned (0-180 degree) orientation histograms per cell with
    interpolation, and blocks are L2-Hys normalized. The descriptor length
    depends only on the configuration.
    """

    def __init__(self, config: FeatureConfig = None):
        self.config = config or FeatureConfig()
        self.config.validate()
        self._hog = cv2.HOGDescriptor(
            self.config.win_size,
            self.config.block_size,
            self.config.block_stride,
            self.config.cell_size,
            self.config.nbins,
        )

    @property
    def length(self) -> int:
        return int(self._hog.getDescriptorSize())

    def extract(self, image: np.ndarray) -> np.ndarray:
        """Return the float32 descriptor of a single grayscale image."""
        img = np.asarray(image)
        if img.ndim == 3:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        if img.dtype != np.uint8:
            img = np.clip(img, 0, 255).astype(np.uint8)

        if img.shape[::-1] != tuple(self.config.win_size):
            img = cv2.resize(img, self.config.win_size)

        descriptor = self._hog.compute(img)
        return np.asarray(descriptor, dtype=np.float32).reshape(-1)

    def extract_many(self, images: Iterable[np.ndarray], progress: bool = False) -> np.ndarray:
        """Stack descriptors into an (N, length) matrix, one row per image."""
        rows = [self.extract(img) for img in tqdm(images, desc="HOG features", disable=not progress)]
        if not rows:
            return np.empty((0, self.length), dtype=np.float32)
        return np.vstack(rows)
