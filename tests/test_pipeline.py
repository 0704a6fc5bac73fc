import numpy as np
import pytest

from digit_classifier import (
    ConfigError,
    ModelFileError,
    ModelStateError,
    Pipeline,
    TrainableClassifier,
)
from digit_classifier.config import TASK_DETECTOR, TASK_DIGIT


@pytest.fixture
def three_blob_frame(light_frame) -> np.ndarray:
    light_frame[40:61, 50:57] = 0
    light_frame[100:133, 120:170] = 0
    light_frame[140:152, 60:83] = 0
    return light_frame


def test_rejecting_detector_yields_no_detections(make_constant_classifier, three_blob_frame) -> None:
    pipeline = Pipeline(
        make_constant_classifier(TASK_DETECTOR, 0),
        make_constant_classifier(TASK_DIGIT, 7),
    )

    assert pipeline.segmenter.segment(three_blob_frame)
    assert pipeline.process(three_blob_frame) == []


def test_accepted_regions_are_classified(make_constant_classifier, three_blob_frame) -> None:
    pipeline = Pipeline(
        make_constant_classifier(TASK_DETECTOR, 1),
        make_constant_classifier(TASK_DIGIT, 7),
        rng=np.random.default_rng(3),
    )

    detections = pipeline.process(three_blob_frame)
    regions = pipeline.segmenter.segment(three_blob_frame)

    assert [d.digit for d in detections] == [7, 7, 7]
    assert sorted(d.region.bbox for d in detections) == sorted(r.bbox for r in regions)
    for det in detections:
        assert len(det.color) == 3
        assert all(0 <= c <= 255 for c in det.color)


def test_classifier_is_not_called_for_rejected_regions(make_constant_classifier, light_frame) -> None:
    class Exploding(TrainableClassifier):
        def predict(self, image):
            raise AssertionError("classifier should not run")

    classifier = Exploding(TASK_DIGIT)
    classifier.model = make_constant_classifier(TASK_DIGIT, 2).model
    light_frame[80:120, 90:150] = 0

    pipeline = Pipeline(make_constant_classifier(TASK_DETECTOR, 0), classifier)

    assert pipeline.process(light_frame) == []


def test_pipeline_requires_trained_models(make_constant_classifier) -> None:
    with pytest.raises(ModelStateError):
        Pipeline(TrainableClassifier(TASK_DETECTOR), make_constant_classifier(TASK_DIGIT, 1))
    with pytest.raises(ModelStateError):
        Pipeline(make_constant_classifier(TASK_DETECTOR, 1), TrainableClassifier(TASK_DIGIT))


def test_pipeline_rejects_swapped_models(make_constant_classifier) -> None:
    with pytest.raises(ConfigError):
        Pipeline(make_constant_classifier(TASK_DIGIT, 1), make_constant_classifier(TASK_DETECTOR, 1))


def test_from_files_loads_both_models(tmp_path, make_constant_classifier, three_blob_frame) -> None:
    make_constant_classifier(TASK_DETECTOR, 1).save(tmp_path / "detector.joblib")
    make_constant_classifier(TASK_DIGIT, 4).save(tmp_path / "digits.joblib")

    pipeline = Pipeline.from_files(tmp_path / "detector.joblib", tmp_path / "digits.joblib")

    assert [d.digit for d in pipeline.process(three_blob_frame)] == [4, 4, 4]


def test_from_files_fails_when_a_model_is_missing(tmp_path, make_constant_classifier) -> None:
    make_constant_classifier(TASK_DETECTOR, 1).save(tmp_path / "detector.joblib")

    with pytest.raises(ModelFileError):
        Pipeline.from_files(tmp_path / "detector.joblib", tmp_path / "missing.joblib")


def test_reloading_a_model_for_the_wrong_role_is_detected(
    tmp_path, make_constant_classifier, three_blob_frame
) -> None:
    make_constant_classifier(TASK_DIGIT, 3).save(tmp_path / "digits.joblib")
    pipeline = Pipeline(
        make_constant_classifier(TASK_DETECTOR, 1),
        make_constant_classifier(TASK_DIGIT, 7),
    )
    region = pipeline.segmenter.segment(three_blob_frame)[0]

    pipeline.detector.load(tmp_path / "digits.joblib")

    with pytest.raises(ConfigError):
        pipeline.process(three_blob_frame)
    with pytest.raises(ConfigError):
        pipeline.classify_region(region)
