import json
import os
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    balanced_accuracy_score,
    roc_auc_score,
    roc_curve,
)

from .utils.logger import get_logger


def roc_curve_points(y_true: np.ndarray, y_proba: np.ndarray) -> pd.DataFrame:
    """
    ROC curve as a DataFrame of (threshold, fpr, tpr), ordered from (0, 0) to (1, 1).

    `y_true` is a 0/1 (or boolean) positive-class indicator. The first row uses
    threshold +inf, where nothing is predicted positive.
    """
    fpr, tpr, thresholds = roc_curve(y_true, y_proba, drop_intermediate=False)
    return pd.DataFrame({"threshold": thresholds, "fpr": fpr, "tpr": tpr})


class Evaluator:
    """Evaluate positive-class probabilities on held-out data and optionally save metrics."""

    def __init__(
        self,
        positive_label: Any,
        metrics_path: Optional[str] = None,
        threshold: float = 0.5,
        verbose: bool = True,
    ):
        self.positive_label = positive_label
        self.metrics_path = metrics_path
        self.threshold = threshold
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        self.roc_curve_: pd.DataFrame | None = None

    def evaluate(self, y_true: np.ndarray, y_proba: np.ndarray) -> Dict[str, float]:
        """Compute ROC-AUC (plus threshold metrics) and the ROC curve; save JSON if configured."""
        y_pos = (np.asarray(y_true) == self.positive_label).astype(int)
        y_proba = np.asarray(y_proba).astype(float)

        if len(y_pos) != len(y_proba):
            raise ValueError(f"Got {len(y_pos)} labels but {len(y_proba)} probabilities")
        if len(np.unique(y_pos)) < 2:
            raise ValueError("Evaluation data must contain both classes to compute ROC-AUC")

        y_pred = (y_proba >= self.threshold).astype(int)

        metrics: Dict[str, float] = {
            "ROC_AUC": float(roc_auc_score(y_pos, y_proba)),
            "PR_AUC": float(average_precision_score(y_pos, y_proba)),
            "Accuracy": float(accuracy_score(y_pos, y_pred)),
            "Balanced_Accuracy": float(balanced_accuracy_score(y_pos, y_pred)),
            "Threshold": float(self.threshold),
        }
        self.roc_curve_ = roc_curve_points(y_pos, y_proba)

        if self.metrics_path:
            os.makedirs(os.path.dirname(self.metrics_path) or ".", exist_ok=True)
            with open(self.metrics_path, "w") as f:
                json.dump(metrics, f, indent=4)

            if self.verbose:
                self.logger.info(f"Saved metrics: {self.metrics_path}")

        return metrics
