import numpy as np
import pytest

from digit_classifier import Pipeline, annotate_frame, central_roi, run_live
from digit_classifier.config import TASK_DETECTOR, TASK_DIGIT


class FakeCapture:
    def __init__(self, frames):
        self.frames = list(frames)
        self.reads = 0

    def read(self):
        self.reads += 1
        if not self.frames:
            return False, None
        frame = self.frames.pop(0)
        return frame is not None, frame


@pytest.fixture
def pipeline(make_constant_classifier) -> Pipeline:
    return Pipeline(
        make_constant_classifier(TASK_DETECTOR, 1),
        make_constant_classifier(TASK_DIGIT, 5),
        rng=np.random.default_rng(0),
    )


def test_failed_reads_are_skipped(pipeline, light_frame) -> None:
    light_frame[80:120, 90:150] = 0
    source = FakeCapture([None, light_frame, None, light_frame])
    seen = []

    processed = run_live(
        pipeline,
        source,
        on_frame=lambda frame, detections: seen.append([d.digit for d in detections]),
        should_stop=lambda: len(seen) == 2,
    )

    assert processed == 2
    assert seen == [[5], [5]]
    assert source.reads == 4


def test_loop_ends_after_consecutive_failures(pipeline) -> None:
    source = FakeCapture([])

    processed = run_live(pipeline, source, on_frame=lambda *_: None, max_failures=3)

    assert processed == 0
    assert source.reads == 3


def test_annotate_frame_draws_on_a_copy(pipeline, light_frame) -> None:
    light_frame[80:120, 90:150] = 0
    original = light_frame.copy()
    detections = pipeline.process(light_frame)

    annotated = annotate_frame(light_frame, detections, central_roi(light_frame.shape, 0.75))

    assert annotated.shape == light_frame.shape + (3,)
    assert np.array_equal(light_frame, original)
    # ROI outline in red
    assert annotated[25, 100].tolist() == [0, 0, 255]
    # detection box in its advisory color
    assert annotated[80, 120].tolist() == list(detections[0].color)
