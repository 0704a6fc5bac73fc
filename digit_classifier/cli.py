"""
Command line entry points: train the two models, test them, and run the
two-stage pipeline on an image file or a camera.

Examples:
    digit-classifier train-classifier --data-dir data/MNIST
    digit-classifier train-detector --data-dir data/MNIST --not-digits-dir data/NotDigits
    digit-classifier test --model mnistSvm.joblib --images t10k-images.idx3-ubyte --labels t10k-labels.idx1-ubyte
    digit-classifier classify --image numbers.bmp --output numbers_annotated.png
    digit-classifier live --camera 0
"""

import argparse
import logging
import os
import sys
import time
from typing import List, Optional

import cv2

from . import config
from .classifier import SvmParams, TrainableClassifier
from .dataset import build_detector_dataset, load_dataset, load_image_folder
from .errors import DigitClassifierError
from .evaluation import evaluate
from .live import annotate_frame, run_live
from .pipeline import Pipeline


def _params_from_args(args, defaults: dict) -> SvmParams:
    values = dict(defaults)
    for name in ("kernel", "C", "gamma", "degree"):
        value = getattr(args, name, None)
        if value is not None:
            values[name] = value
    return SvmParams.from_dict(values)


def _load_mnist(data_dir: str, limit: Optional[int]):
    train = load_dataset(os.path.join(data_dir, config.TRAIN_IMAGES), os.path.join(data_dir, config.TRAIN_LABELS))
    test = load_dataset(os.path.join(data_dir, config.TEST_IMAGES), os.path.join(data_dir, config.TEST_LABELS))
    if limit:
        train, test = train.head(limit), test.head(limit)
    return train, test


def _train_and_report(clf: TrainableClassifier, train, test, output: str, auto: bool, name: str):
    print(f"\n🔹 Training {name} on {len(train)} samples (this can take several minutes)...")
    start = time.time()
    if auto:
        clf.train_auto(train, progress=True)
    else:
        clf.train(train, progress=True)
    print(f"✅ {name} training complete in {time.time() - start:.2f}s ({clf.params})")

    print(f"🔍 Testing {name} on {len(test)} samples...")
    error_rate = clf.test(test)
    print(f"📊 {name} percent error: {error_rate:.2f}%")

    clf.save(output)
    print(f"💾 Model saved to {output}")


def _handle_train_classifier(args) -> int:
    train, test = _load_mnist(args.data_dir, args.limit)
    clf = TrainableClassifier(config.TASK_DIGIT, _params_from_args(args, config.DIGIT_PARAMS))
    _train_and_report(clf, train, test, args.output, args.auto, "classification SVM")
    return 0


def _handle_train_detector(args) -> int:
    train, test = _load_mnist(args.data_dir, args.limit)
    train = build_detector_dataset(train, load_image_folder(os.path.join(args.not_digits_dir, "train")))
    test = build_detector_dataset(test, load_image_folder(os.path.join(args.not_digits_dir, "test")))

    clf = TrainableClassifier(config.TASK_DETECTOR, _params_from_args(args, config.DETECTOR_PARAMS))
    _train_and_report(clf, train, test, args.output, args.auto, "detector SVM")
    return 0


def _handle_test(args) -> int:
    clf = TrainableClassifier.from_file(args.model)
    dataset = load_dataset(args.images, args.labels)
    if args.detector_negatives:
        dataset = build_detector_dataset(dataset, load_image_folder(args.detector_negatives))

    summary = evaluate(clf, dataset, args.report_dir)
    print(f"📊 {summary['task']} model: accuracy {summary['accuracy']:.3f}, "
          f"percent error {summary['error_rate']:.2f}% on {summary['total_predictions']} samples")
    if args.report_dir:
        print(f"💾 Evaluation results saved to: {args.report_dir}")
    return 0


def _handle_classify(args) -> int:
    frame = cv2.imread(args.image)
    if frame is None:
        print(f"❌ Could not load image: {args.image}")
        return 1

    pipeline = Pipeline.from_files(args.detector, args.classifier)
    detections = pipeline.process(frame)

    print(f"Found {len(detections)} digits in {args.image}")
    for det in detections:
        x, y, w, h = det.region.bbox
        print(f"   digit {det.digit} at x={x} y={y} w={w} h={h}")

    if args.output:
        annotated = annotate_frame(frame, detections, pipeline.segmenter.roi_for(frame))
        cv2.imwrite(args.output, annotated)
        print(f"💾 Annotated image saved to {args.output}")
    return 0


def _handle_live(args) -> int:
    pipeline = Pipeline.from_files(args.detector, args.classifier)

    capture = cv2.VideoCapture(args.camera)
    if not capture.isOpened():
        print(f"❌ Could not open video capture device {args.camera}")
        return 1

    width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
    print(f"Frame resolution: Width = {width} Height = {height}")

    keys = []

    def show(frame, detections):
        cv2.imshow("Display", annotate_frame(frame, detections, pipeline.segmenter.roi_for(frame)))
        keys.append(cv2.waitKey(50) & 0xFF)

    try:
        run_live(pipeline, capture, show, should_stop=lambda: keys[-1] in (ord("q"), ord("Q")))
    finally:
        capture.release()
        cv2.destroyAllWindows()
    print("Exiting")
    return 0


def _add_svm_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--kernel", choices=["linear", "poly", "rbf"], help="SVM kernel")
    parser.add_argument("--C", type=float, help="regularization constant")
    parser.add_argument("--gamma", type=float, help="kernel gamma")
    parser.add_argument("--degree", type=int, help="polynomial degree")
    parser.add_argument("--auto", action="store_true", help="grid-search C and gamma with cross validation")
    parser.add_argument("--limit", type=int, help="use only the first N train/test samples")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HOG + SVM handwritten digit classification.")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    train_clf = subparsers.add_parser("train-classifier", help="train the 0-9 digit classifier")
    train_clf.add_argument("--data-dir", default=config.MNIST_DIR)
    train_clf.add_argument("--output", default=config.CLASSIFIER_MODEL_FILE)
    _add_svm_arguments(train_clf)

    train_det = subparsers.add_parser("train-detector", help="train the digit / non-digit detector")
    train_det.add_argument("--data-dir", default=config.MNIST_DIR)
    train_det.add_argument("--not-digits-dir", default=config.NOT_DIGITS_DIR,
                           help="folder with train/ and test/ subfolders of non-digit images")
    train_det.add_argument("--output", default=config.DETECTOR_MODEL_FILE)
    _add_svm_arguments(train_det)

    test = subparsers.add_parser("test", help="evaluate a saved model on a labeled dataset")
    test.add_argument("--model", required=True)
    test.add_argument("--images", required=True)
    test.add_argument("--labels", required=True)
    test.add_argument("--detector-negatives", help="folder of non-digit images (detector models)")
    test.add_argument("--report-dir", help="write CSV/JSON evaluation results here")

    for name, help_text in (("classify", "annotate digits in an image file"),
                            ("live", "annotate digits from a camera")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--detector", default=config.DETECTOR_MODEL_FILE)
        sub.add_argument("--classifier", default=config.CLASSIFIER_MODEL_FILE)
        if name == "classify":
            sub.add_argument("--image", required=True)
            sub.add_argument("--output", help="path for the annotated image")
        else:
            sub.add_argument("--camera", type=int, default=0)

    return parser


HANDLERS = {
    "train-classifier": _handle_train_classifier,
    "train-detector": _handle_train_detector,
    "test": _handle_test,
    "classify": _handle_classify,
    "live": _handle_live,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return HANDLERS[args.command](args)
    except DigitClassifierError as error:
        print(f"❌ {type(error).__name__}: {error}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
