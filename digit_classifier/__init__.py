"""Handwritten digit classification from camera frames with HOG features and SVMs."""

from .classifier import SvmParams, TrainableClassifier, TrainedModel, load_model
from .dataset import (
    Dataset,
    binarize,
    build_detector_dataset,
    load_dataset,
    load_image_folder,
    load_images,
    load_labels,
    save_images,
    save_labels,
)
from .errors import (
    ConfigError,
    DigitClassifierError,
    FormatError,
    ModelFileError,
    ModelStateError,
    TrainingError,
)
from .evaluation import evaluate
from .features import FeatureConfig, FeatureExtractor
from .live import annotate_frame, run_live
from .pipeline import Detection, Pipeline
from .segmentation import FrameSegmenter, Region, Roi, central_roi

__all__ = [
    "Dataset",
    "binarize",
    "load_images",
    "load_labels",
    "load_dataset",
    "save_images",
    "save_labels",
    "load_image_folder",
    "build_detector_dataset",
    "FeatureConfig",
    "FeatureExtractor",
    "SvmParams",
    "TrainedModel",
    "TrainableClassifier",
    "load_model",
    "FrameSegmenter",
    "Region",
    "Roi",
    "central_roi",
    "Detection",
    "Pipeline",
    "evaluate",
    "annotate_frame",
    "run_live",
    "DigitClassifierError",
    "FormatError",
    "TrainingError",
    "ModelStateError",
    "ConfigError",
    "ModelFileError",
]
