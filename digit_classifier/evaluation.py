"""
Detailed evaluation of a trained classifier on a labeled dataset.
"""

import json
import logging
import os
from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, classification_report, confusion_matrix

from .classifier import TASK_LABELS, TrainableClassifier
from .dataset import Dataset

logger = logging.getLogger(__name__)


def evaluate(classifier: TrainableClassifier, dataset: Dataset, output_dir: Optional[str] = None) -> Dict:
    """
    Error rate, accuracy, confusion matrix and per-class report.

    Args:
        classifier: classifier holding a trained or loaded model
        dataset: labeled dataset
        output_dir: when given, detailed_results.csv, classification_report.json
            and summary_stats.json are written there

    Returns:
        Summary dictionary (JSON serializable)
    """
    error_rate, y_pred = classifier.test_with_predictions(dataset)
    y_true = dataset.labels
    classes = list(TASK_LABELS[classifier.model.task])

    cm = confusion_matrix(y_true, y_pred, labels=classes)
    report = classification_report(
        y_true, y_pred,
        labels=classes,
        target_names=[str(c) for c in classes],
        output_dict=True,
        zero_division=0,
    )

    summary = {
        "task": classifier.model.task,
        "total_predictions": int(len(y_true)),
        "correct_predictions": int(np.count_nonzero(y_true == y_pred)),
        "accuracy": float(accuracy_score(y_true, y_pred)),
        "error_rate": float(error_rate),
        "confusion_matrix": cm.tolist(),
    }

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

        results_df = pd.DataFrame({
            "index": np.arange(len(y_true)),
            "true_label": y_true,
            "predicted_label": y_pred,
            "correct": y_true == y_pred,
        })
        results_df.to_csv(os.path.join(output_dir, "detailed_results.csv"), index=False)

        with open(os.path.join(output_dir, "classification_report.json"), "w") as f:
            json.dump(report, f, indent=2)
        with open(os.path.join(output_dir, "summary_stats.json"), "w") as f:
            json.dump(summary, f, indent=2)
        logger.info("Evaluation results saved to %s", output_dir)

    summary["report"] = report
    return summary
