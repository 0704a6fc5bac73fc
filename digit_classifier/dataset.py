"""
Reading and writing of the MNIST-style binary corpus.

Image file: magic, item count N, rows R, columns C (big-endian uint32), then
N*R*C raw bytes, one row-major image after another.
Label file: magic, item count N (big-endian uint32), then N label bytes.

Every decoded image is binarized at BINARIZE_THRESHOLD so that the stored
sample matches what the segmenter produces at inference time.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .config import (
    BACKGROUND,
    BINARIZE_THRESHOLD,
    FOREGROUND,
    IMAGE_HEADER_BYTES,
    IMAGE_MAGIC,
    LABEL_HEADER_BYTES,
    LABEL_MAGIC,
)
from .errors import FormatError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

IMAGE_EXTENSIONS = (".png", ".bmp", ".jpg", ".jpeg")


@dataclass
class Dataset:
    """Stack of same-sized grayscale samples with an optional parallel label array."""

    images: np.ndarray
    labels: Optional[np.ndarray] = None

    def __post_init__(self):
        self.images = np.asarray(self.images, dtype=np.uint8)
        if self.images.ndim != 3:
            raise FormatError(f"expected an (N, rows, cols) image stack, got shape {self.images.shape}")
        if self.labels is not None:
            self.labels = np.asarray(self.labels, dtype=np.int32).reshape(-1)

    def __len__(self) -> int:
        return int(self.images.shape[0])

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.images)

    def __getitem__(self, index: int) -> np.ndarray:
        return self.images[index]

    @property
    def sample_shape(self) -> Tuple[int, int]:
        """(rows, cols) shared by every sample."""
        return int(self.images.shape[1]), int(self.images.shape[2])

    def with_labels(self, labels: Sequence[int]) -> "Dataset":
        return Dataset(self.images, np.asarray(labels))

    def head(self, count: int) -> "Dataset":
        """First `count` samples, labels included."""
        labels = None if self.labels is None else self.labels[:count]
        return Dataset(self.images[:count], labels)


def binarize(image: np.ndarray, threshold: int = BINARIZE_THRESHOLD) -> np.ndarray:
    """Pixels >= threshold become FOREGROUND, the rest BACKGROUND."""
    return np.where(image >= threshold, FOREGROUND, BACKGROUND).astype(np.uint8)


def _read_file(path: PathLike) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as error:
        raise FormatError(f"Failed to open file: {path}") from error


def _read_header(data: bytes, size: int, path: PathLike) -> np.ndarray:
    if len(data) < size:
        raise FormatError(f"{path}: file is {len(data)} bytes, shorter than the {size}-byte header")
    return np.frombuffer(data[:size], dtype=">u4").astype(np.int64)


def _check_magic(magic: int, expected_magic: Optional[int], path: PathLike):
    if expected_magic is not None and magic != expected_magic:
        raise FormatError(f"{path}: magic number {magic} does not match expected {expected_magic}")


def load_images(
    path: PathLike,
    expected_magic: Optional[int] = None,
    threshold: int = BINARIZE_THRESHOLD,
) -> Dataset:
    """
    Load an image file into an unlabeled Dataset.

    Args:
        path: image file in the MNIST idx3 layout
        expected_magic: reject the file unless its magic number matches (None skips the check)
        threshold: binarization threshold applied to every pixel

    Returns:
        Dataset with images of shape (N, rows, cols) and no labels

    Raises:
        FormatError: file cannot be opened or its size disagrees with the header
    """
    data = _read_file(path)
    magic, count, rows, cols = _read_header(data, IMAGE_HEADER_BYTES, path)
    _check_magic(magic, expected_magic, path)

    expected_size = IMAGE_HEADER_BYTES + count * rows * cols
    if len(data) != expected_size:
        raise FormatError(
            f"{path}: header declares {count} images of {rows}x{cols} "
            f"({expected_size} bytes) but file has {len(data)} bytes"
        )

    pixels = np.frombuffer(data, dtype=np.uint8, offset=IMAGE_HEADER_BYTES)
    images = binarize(pixels.reshape(count, rows, cols), threshold)

    logger.info("Loaded %d images (%dx%d) from %s", count, rows, cols, path)
    return Dataset(images)


def load_labels(path: PathLike, expected_magic: Optional[int] = None) -> np.ndarray:
    """Load a label file into an int32 array, preserving file order."""
    data = _read_file(path)
    magic, count = _read_header(data, LABEL_HEADER_BYTES, path)
    _check_magic(magic, expected_magic, path)

    expected_size = LABEL_HEADER_BYTES + count
    if len(data) != expected_size:
        raise FormatError(
            f"{path}: header declares {count} labels ({expected_size} bytes) "
            f"but file has {len(data)} bytes"
        )

    labels = np.frombuffer(data, dtype=np.uint8, offset=LABEL_HEADER_BYTES).astype(np.int32)
    logger.info("Loaded %d labels from %s", count, path)
    return labels


def load_dataset(images_path: PathLike, labels_path: PathLike, strict_magic: bool = False) -> Dataset:
    """Load an image file and its label file into one labeled Dataset."""
    images = load_images(images_path, IMAGE_MAGIC if strict_magic else None)
    labels = load_labels(labels_path, LABEL_MAGIC if strict_magic else None)
    return images.with_labels(labels)


def save_images(path: PathLike, images: np.ndarray, magic: int = IMAGE_MAGIC):
    """Write an (N, rows, cols) uint8 stack in the idx3 layout."""
    images = np.asarray(images, dtype=np.uint8)
    if images.ndim != 3:
        raise FormatError(f"expected an (N, rows, cols) image stack, got shape {images.shape}")

    count, rows, cols = images.shape
    header = np.array([magic, count, rows, cols], dtype=">u4").tobytes()
    Path(path).write_bytes(header + images.tobytes())


def save_labels(path: PathLike, labels: Sequence[int], magic: int = LABEL_MAGIC):
    """Write labels (0-255) in the idx1 layout."""
    labels = np.asarray(labels).reshape(-1)
    if labels.size and (labels.min() < 0 or labels.max() > 255):
        raise FormatError("labels must fit in a single byte")

    header = np.array([magic, labels.size], dtype=">u4").tobytes()
    Path(path).write_bytes(header + labels.astype(np.uint8).tobytes())


def load_image_folder(path: PathLike) -> List[np.ndarray]:
    """Read every image in a folder as grayscale, sorted by file name."""
    folder = Path(path)
    if not folder.is_dir():
        raise FormatError(f"Image folder not found: {folder}")

    images = []
    for file_path in sorted(folder.iterdir()):
        if file_path.suffix.lower() not in IMAGE_EXTENSIONS:
            continue
        img = cv2.imread(str(file_path), cv2.IMREAD_GRAYSCALE)
        if img is None:
            raise FormatError(f"Could not load image: {file_path}")
        images.append(img)

    logger.info("Loaded %d images from %s", len(images), folder)
    return images


def build_detector_dataset(
    digits: Dataset,
    non_digits: Sequence[np.ndarray],
    threshold: int = BINARIZE_THRESHOLD,
) -> Dataset:
    """
    Build the digit / non-digit training set for the detector.

    Every digit sample is labeled 1. Non-digit images are converted to
    grayscale, resized to the digit geometry when needed, binarized with the
    same threshold and labeled 0.
    """
    rows, cols = digits.sample_shape
    extra = []
    for img in non_digits:
        if img.ndim == 3:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        if img.shape != (rows, cols):
            img = cv2.resize(img, (cols, rows), interpolation=cv2.INTER_AREA)
        extra.append(binarize(img, threshold))

    if extra:
        images = np.concatenate([digits.images, np.stack(extra)])
    else:
        images = digits.images.copy()
    labels = np.concatenate([
        np.ones(len(digits), dtype=np.int32),
        np.zeros(len(extra), dtype=np.int32),
    ])
    return Dataset(images, labels)
