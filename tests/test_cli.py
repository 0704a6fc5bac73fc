import cv2
import numpy as np

from digit_classifier import load_model, save_images, save_labels
from digit_classifier.cli import main
from digit_classifier.config import TASK_DETECTOR, TASK_DIGIT


def _bars(count: int):
    images = np.zeros((count, 28, 28), dtype=np.uint8)
    labels = np.zeros(count, dtype=np.int32)
    for index in range(count):
        shift = index % 5 - 2
        if index % 2:
            images[index, 4:24, 12 + shift:16 + shift] = 255
            labels[index] = 1
        else:
            images[index, 12 + shift:16 + shift, 4:24] = 255
    return images, labels


def _write_mnist_dir(path, count: int = 20):
    path.mkdir()
    images, labels = _bars(count)
    for prefix in ("train", "t10k"):
        save_images(path / f"{prefix}-images.idx3-ubyte", images)
        save_labels(path / f"{prefix}-labels.idx1-ubyte", labels)
    return path


def test_train_classifier_then_test(tmp_path, capsys) -> None:
    data_dir = _write_mnist_dir(tmp_path / "mnist")
    model_path = tmp_path / "digits.joblib"

    assert main(["train-classifier", "--data-dir", str(data_dir), "--output", str(model_path),
                 "--kernel", "linear", "--C", "10"]) == 0
    assert load_model(model_path).task == TASK_DIGIT

    assert main(["test", "--model", str(model_path),
                 "--images", str(data_dir / "t10k-images.idx3-ubyte"),
                 "--labels", str(data_dir / "t10k-labels.idx1-ubyte"),
                 "--report-dir", str(tmp_path / "report")]) == 0
    assert (tmp_path / "report" / "summary_stats.json").exists()
    assert "percent error" in capsys.readouterr().out


def test_train_detector_adds_non_digit_images(tmp_path) -> None:
    data_dir = _write_mnist_dir(tmp_path / "mnist")
    for split in ("train", "test"):
        folder = tmp_path / "not_digits" / split
        folder.mkdir(parents=True)
        for index in range(4):
            noise = np.zeros((28, 28), dtype=np.uint8)
            noise[index * 5:index * 5 + 3, :] = 255
            cv2.imwrite(str(folder / f"image{index}.bmp"), noise)

    model_path = tmp_path / "detector.joblib"
    assert main(["train-detector", "--data-dir", str(data_dir),
                 "--not-digits-dir", str(tmp_path / "not_digits"),
                 "--output", str(model_path)]) == 0
    assert load_model(model_path).task == TASK_DETECTOR


def test_classify_reports_missing_model(tmp_path, capsys) -> None:
    image_path = tmp_path / "frame.png"
    cv2.imwrite(str(image_path), np.full((200, 240), 255, dtype=np.uint8))

    code = main(["classify", "--image", str(image_path),
                 "--detector", str(tmp_path / "missing.joblib"),
                 "--classifier", str(tmp_path / "missing.joblib")])

    assert code == 1
    assert "ModelFileError" in capsys.readouterr().err


def test_classify_writes_annotated_image(tmp_path, make_constant_classifier, capsys) -> None:
    make_constant_classifier(TASK_DETECTOR, 1).save(tmp_path / "detector.joblib")
    make_constant_classifier(TASK_DIGIT, 8).save(tmp_path / "digits.joblib")
    frame = np.full((200, 240, 3), 255, dtype=np.uint8)
    frame[80:120, 90:150] = 0
    cv2.imwrite(str(tmp_path / "frame.png"), frame)

    code = main(["classify", "--image", str(tmp_path / "frame.png"),
                 "--detector", str(tmp_path / "detector.joblib"),
                 "--classifier", str(tmp_path / "digits.joblib"),
                 "--output", str(tmp_path / "annotated.png")])

    assert code == 0
    assert "digit 8 at x=90 y=80 w=60 h=40" in capsys.readouterr().out
    assert cv2.imread(str(tmp_path / "annotated.png")).shape == (200, 240, 3)
