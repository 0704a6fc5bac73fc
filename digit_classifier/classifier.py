"""
Trainable HOG + SVM classifier.

A TrainableClassifier owns one FeatureExtractor and one scikit-learn style
estimator (anything with fit/predict). Training produces an immutable
TrainedModel that records the hyperparameters, the HOG geometry and the task
(digit detector or digit classifier) it was trained for.
"""

import logging
import os
import tempfile
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import joblib
import numpy as np
from sklearn.base import clone
from sklearn.model_selection import GridSearchCV
from sklearn.svm import SVC

from .config import (
    AUTO_FOLDS,
    C_GRID,
    DETECTOR_PARAMS,
    DIGIT_PARAMS,
    GAMMA_GRID,
    TASK_DETECTOR,
    TASK_DIGIT,
)
from .dataset import Dataset
from .errors import ConfigError, ModelFileError, ModelStateError, TrainingError
from .features import FeatureConfig, FeatureExtractor

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

KERNELS = ("linear", "poly", "rbf")
TASK_LABELS = {
    TASK_DETECTOR: (0, 1),
    TASK_DIGIT: tuple(range(10)),
}
MODEL_FORMAT = 1


@dataclass(frozen=True)
class SvmParams:
    """C-SVC hyperparameters. gamma and degree only matter for non-linear kernels."""

    kernel: str = "linear"
    C: float = 1.0
    gamma: float = 1.0
    degree: int = 3

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "SvmParams":
        return cls(**values)

    def validate(self):
        if self.kernel not in KERNELS:
            raise ConfigError(f"kernel must be one of {KERNELS}, got {self.kernel!r}")
        if self.C <= 0:
            raise ConfigError(f"C must be positive, got {self.C}")
        if self.gamma <= 0:
            raise ConfigError(f"gamma must be positive, got {self.gamma}")
        if self.degree < 1 or int(self.degree) != self.degree:
            raise ConfigError(f"degree must be a positive integer, got {self.degree}")

    def build_estimator(self) -> SVC:
        # coef0=0 keeps the polynomial kernel at (gamma * <x, y>)^degree
        return SVC(kernel=self.kernel, C=self.C, gamma=self.gamma, degree=int(self.degree), coef0=0.0)


def default_params(task: str) -> SvmParams:
    return SvmParams.from_dict(DETECTOR_PARAMS if task == TASK_DETECTOR else DIGIT_PARAMS)


@dataclass(frozen=True)
class TrainedModel:
    """Fitted estimator plus everything needed to reproduce its predictions."""

    estimator: Any
    params: SvmParams
    task: str
    features: FeatureConfig
    feature_length: int


def _param_grid(grid: Tuple[float, float, float]) -> List[float]:
    """Values min * step**k below max, the log-scale grid used for auto-training."""
    low, high, step = grid
    if low <= 0 or step <= 1:
        raise ConfigError(f"invalid parameter grid {grid}")
    values = []
    value = low
    while value < high:
        values.append(value)
        value *= step
    return values or [low]


class TrainableClassifier:
    """Train / test / predict / save / load around a HOG feature extractor."""

    def __init__(
        self,
        task: str = TASK_DIGIT,
        params: Optional[SvmParams] = None,
        features: Optional[FeatureConfig] = None,
        estimator: Any = None,
    ):
        """
        Args:
            task: TASK_DIGIT (labels 0-9) or TASK_DETECTOR (labels 0/1)
            params: SVM hyperparameters, defaults depend on the task
            features: HOG geometry for the feature extractor
            estimator: optional unfitted estimator replacing the SVC built from params
        """
        if task not in TASK_LABELS:
            raise ConfigError(f"task must be one of {sorted(TASK_LABELS)}, got {task!r}")
        self.task = task
        self.params = params or default_params(task)
        self.params.validate()
        self.extractor = FeatureExtractor(features)
        self.estimator = estimator
        self.model: Optional[TrainedModel] = None

    # ---------- helpers ----------
    def _labels_for(self, dataset: Dataset) -> np.ndarray:
        if len(dataset) == 0:
            raise TrainingError("dataset is empty")
        if dataset.labels is None:
            raise TrainingError("dataset has no labels")
        if len(dataset.labels) != len(dataset):
            raise TrainingError(
                f"label count {len(dataset.labels)} does not match sample count {len(dataset)}"
            )
        return dataset.labels

    def _check_task_labels(self, labels: np.ndarray):
        allowed = TASK_LABELS[self.task]
        unexpected = sorted(set(np.unique(labels).tolist()) - set(allowed))
        if unexpected:
            raise TrainingError(f"labels {unexpected} are not valid for a {self.task} model")

    def _extractor_for(self, model: TrainedModel) -> FeatureExtractor:
        if model.features == self.extractor.config:
            return self.extractor
        return FeatureExtractor(model.features)

    def _require_model(self, model: Optional[TrainedModel] = None) -> TrainedModel:
        model = model or self.model
        if model is None:
            raise ModelStateError("no trained or loaded model")
        return model

    def _new_model(self, estimator: Any, params: SvmParams) -> TrainedModel:
        return TrainedModel(
            estimator=estimator,
            params=params,
            task=self.task,
            features=self.extractor.config,
            feature_length=self.extractor.length,
        )

    # ---------- training ----------
    def train(self, dataset: Dataset, progress: bool = False) -> TrainedModel:
        """Fit a new model on every (features, label) pair of the dataset."""
        labels = self._labels_for(dataset)
        self._check_task_labels(labels)

        features = self.extractor.extract_many(dataset, progress=progress)
        estimator = clone(self.estimator) if self.estimator is not None else self.params.build_estimator()

        logger.info("Training %s model on %d samples (%d features)", self.task, len(dataset), features.shape[1])
        try:
            estimator.fit(features, labels)
        except ValueError as error:
            raise TrainingError(f"training failed: {error}") from error

        self.model = self._new_model(estimator, self.params)
        return self.model

    def train_auto(
        self,
        dataset: Dataset,
        folds: int = AUTO_FOLDS,
        c_grid: Tuple[float, float, float] = C_GRID,
        gamma_grid: Tuple[float, float, float] = GAMMA_GRID,
        progress: bool = False,
    ) -> TrainedModel:
        """Cross-validated grid search over C and gamma, keeping the best model."""
        labels = self._labels_for(dataset)
        self._check_task_labels(labels)
        features = self.extractor.extract_many(dataset, progress=progress)

        if self.estimator is not None:
            base = clone(self.estimator)
            missing = {"C", "gamma"} - set(base.get_params())
            if missing:
                raise ConfigError(
                    f"{type(base).__name__} has no {sorted(missing)} parameters to search over"
                )
        else:
            base = self.params.build_estimator()

        grid = {"C": _param_grid(c_grid), "gamma": _param_grid(gamma_grid)}
        search = GridSearchCV(base, grid, cv=folds)

        logger.info("Auto-training %s model: %d parameter sets x %d folds",
                    self.task, len(grid["C"]) * len(grid["gamma"]), folds)
        try:
            search.fit(features, labels)
        except ValueError as error:
            raise TrainingError(f"auto-training failed: {error}") from error

        best = replace(self.params, C=float(search.best_params_["C"]), gamma=float(search.best_params_["gamma"]))
        logger.info("Best parameters: C=%.4f gamma=%.4f (score %.4f)", best.C, best.gamma, search.best_score_)

        self.params = best
        self.model = self._new_model(search.best_estimator_, best)
        return self.model

    # ---------- inference ----------
    def predict(self, image: np.ndarray) -> int:
        """Predicted class for a single image."""
        model = self._require_model()
        features = self._extractor_for(model).extract(image)
        return int(model.estimator.predict(features.reshape(1, -1))[0])

    def predict_many(self, images: Sequence[np.ndarray], model: Optional[TrainedModel] = None) -> np.ndarray:
        model = self._require_model(model)
        features = self._extractor_for(model).extract_many(images)
        if len(features) == 0:
            return np.empty(0, dtype=np.int32)
        return np.asarray(model.estimator.predict(features)).astype(np.int32)

    def test(self, dataset: Dataset, model: Optional[TrainedModel] = None) -> float:
        """
        Percent of samples whose prediction differs from the stored label.

        Returns:
            100 * mismatches / total
        """
        error_rate, _ = self.test_with_predictions(dataset, model)
        return error_rate

    def test_with_predictions(
        self, dataset: Dataset, model: Optional[TrainedModel] = None
    ) -> Tuple[float, np.ndarray]:
        """Percent error together with the per-sample predictions it was computed from."""
        model = self._require_model(model)
        labels = self._labels_for(dataset)

        predictions = self.predict_many(dataset, model)
        errors = int(np.count_nonzero(predictions != labels))
        error_rate = 100.0 * errors / len(labels)

        logger.info("Tested %s model on %d samples: %d errors (%.2f%%)", model.task, len(labels), errors, error_rate)
        return error_rate, predictions

    # ---------- persistence ----------
    def save(self, path: PathLike, model: Optional[TrainedModel] = None):
        """Write the model to `path`, replacing any existing file atomically."""
        model = self._require_model(model)
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        payload = {
            "format": MODEL_FORMAT,
            "task": model.task,
            "params": asdict(model.params),
            "features": asdict(model.features),
            "feature_length": model.feature_length,
            "estimator": model.estimator,
        }

        fd, tmp_name = tempfile.mkstemp(prefix=target.name, suffix=".tmp", dir=target.parent)
        os.close(fd)
        try:
            joblib.dump(payload, tmp_name)
            os.replace(tmp_name, target)
        finally:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
        logger.info("Saved %s model to %s", model.task, target)

    def load(self, path: PathLike) -> TrainedModel:
        """Load a model file and make it the current model."""
        model = load_model(path)
        self.task = model.task
        self.params = model.params
        if model.features != self.extractor.config:
            self.extractor = FeatureExtractor(model.features)
        self.model = model
        return model

    @classmethod
    def from_file(cls, path: PathLike) -> "TrainableClassifier":
        model = load_model(path)
        classifier = cls(task=model.task, params=model.params, features=model.features)
        classifier.model = model
        return classifier


def load_model(path: PathLike) -> TrainedModel:
    """
    Read a model written by TrainableClassifier.save.

    Raises:
        ModelFileError: file missing or not a serialized model
    """
    source = Path(path)
    if not source.is_file():
        raise ModelFileError(f"Model not found at {source}")

    try:
        payload = joblib.load(source)
    except Exception as error:
        raise ModelFileError(f"Could not read model file {source}: {error}") from error

    if not isinstance(payload, dict) or payload.get("format") != MODEL_FORMAT:
        raise ModelFileError(f"{source} is not a digit classifier model file")

    try:
        features = {key: tuple(value) if isinstance(value, (list, tuple)) else value
                    for key, value in payload["features"].items()}
        model = TrainedModel(
            estimator=payload["estimator"],
            params=SvmParams.from_dict(payload["params"]),
            task=payload["task"],
            features=FeatureConfig(**features),
            feature_length=int(payload["feature_length"]),
        )
    except (KeyError, TypeError, AttributeError) as error:
        raise ModelFileError(f"{source} is missing model fields: {error}") from error

    if model.task not in TASK_LABELS or not hasattr(model.estimator, "predict"):
        raise ModelFileError(f"{source} does not contain a usable model")

    logger.info("Loaded %s model from %s", model.task, source)
    return model
