import numpy as np
import pytest
from sklearn.dummy import DummyClassifier

from digit_classifier import Dataset, TrainableClassifier
from digit_classifier.config import TASK_DETECTOR


def _bar(vertical: bool, shift: int) -> np.ndarray:
    img = np.zeros((28, 28), dtype=np.uint8)
    if vertical:
        img[4:24, 12 + shift:16 + shift] = 255
    else:
        img[12 + shift:16 + shift, 4:24] = 255
    return img


@pytest.fixture
def bars_dataset() -> Dataset:
    """Vertical bars labeled 1, horizontal bars labeled 0, shifted by -3..3 px."""
    images, labels = [], []
    for shift in range(-3, 4):
        images.append(_bar(True, shift))
        labels.append(1)
        images.append(_bar(False, shift))
        labels.append(0)
    return Dataset(np.stack(images), np.array(labels))


@pytest.fixture
def make_constant_classifier():
    """Factory for a trained classifier that always predicts `value`."""

    def factory(task: str, value: int) -> TrainableClassifier:
        other = 1 - value if task == TASK_DETECTOR else (value + 1) % 10
        clf = TrainableClassifier(task, estimator=DummyClassifier(strategy="constant", constant=value))
        images = np.zeros((2, 28, 28), dtype=np.uint8)
        clf.train(Dataset(images, np.array([value, other])))
        return clf

    return factory


@pytest.fixture
def light_frame() -> np.ndarray:
    """Uniform light 200x240 grayscale frame."""
    return np.full((200, 240), 255, dtype=np.uint8)
