import os
from typing import Any, Optional, Sequence

import joblib
import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, roc_auc_score
from sklearn.pipeline import Pipeline

from .preprocessor import Preprocessor
from .splitter import Fold
from .tree import CostComplexityTree
from .utils.logger import get_logger


def positive_proba(model: Pipeline, X_df: pd.DataFrame, positive_label: Any) -> np.ndarray:
    """Probability of `positive_label` for each row; 0 if the model never saw that class."""
    proba = model.predict_proba(X_df)
    classes = list(model.classes_)
    if positive_label not in classes:
        return np.zeros(len(X_df), dtype=float)
    return proba[:, classes.index(positive_label)]


class ModelTrainer:
    """
    Fits the preprocessing + tree workflow with leakage-safe cross-validation:
    preprocessing is fit only on the analysis rows of each fold, then applied to
    the assessment rows.

    Provides:
      - cross_validate: mean ROC-AUC across folds and the per-fold score table
      - fit_final: trains the final workflow on the full training set
      - predict_proba_test: positive-class probabilities from the final workflow
    """

    def __init__(
        self,
        params: dict[str, Any],
        positive_label: Any,
        n_neighbors: int = 5,
        model_path: Optional[str] = None,
    ):
        self.params = dict(params)
        self.positive_label = positive_label
        self.n_neighbors = n_neighbors
        self.model_path = model_path

        self.logger = get_logger(self.__class__.__name__)
        self.final_model: Pipeline | None = None

    def build_workflow(self, X_df: pd.DataFrame) -> Pipeline:
        """Unfitted preprocessing pipeline followed by the tree."""
        prep = Preprocessor(n_neighbors=self.n_neighbors)
        return Pipeline(
            steps=[
                ("preprocess", prep.build(X_df)),
                ("tree", CostComplexityTree(**self.params)),
            ]
        )

    def cross_validate(
        self,
        X_df: pd.DataFrame,
        y: np.ndarray,
        folds: Sequence[Fold],
    ) -> tuple[float, pd.DataFrame]:
        """
        Fit and score the workflow on every fold. Returns:
          - mean ROC-AUC over the folds where it is defined (NaN if none)
          - one row per fold: fold, n_assessment, roc_auc, accuracy, excluded

        A fold whose assessment rows hold a single class has no ROC-AUC; it is
        reported with NaN and left out of the mean.
        """
        y = np.asarray(y)
        rows: list[dict[str, Any]] = []

        for fold in folds:
            X_train_df = X_df.iloc[fold.analysis_idx].reset_index(drop=True)
            y_train = y[fold.analysis_idx]
            X_val_df = X_df.iloc[fold.assessment_idx].reset_index(drop=True)
            y_val = y[fold.assessment_idx]

            model = self.build_workflow(X_train_df)
            model.fit(X_train_df, y_train)

            val_proba = positive_proba(model, X_val_df, self.positive_label)
            accuracy = float(accuracy_score(y_val, model.predict(X_val_df)))

            if len(np.unique(y_val)) < 2:
                auc = np.nan
                self.logger.warning(
                    f"Fold {fold.fold_id}/{len(folds)} has a single class; ROC-AUC excluded"
                )
            else:
                auc = float(roc_auc_score(y_val == self.positive_label, val_proba))
                self.logger.info(f"Fold {fold.fold_id}/{len(folds)} ROC-AUC: {auc:.4f}")

            rows.append(
                {
                    "fold": fold.fold_id,
                    "n_assessment": len(y_val),
                    "roc_auc": auc,
                    "accuracy": accuracy,
                    "excluded": bool(np.isnan(auc)),
                }
            )

        fold_scores = pd.DataFrame(rows)
        scored = fold_scores.loc[~fold_scores["excluded"], "roc_auc"]
        mean_auc = float(scored.mean()) if len(scored) else float("nan")
        return mean_auc, fold_scores

    def fit_final(self, X_df: pd.DataFrame, y: np.ndarray) -> Pipeline:
        """
        Fit preprocessing + tree on the full training set; save it if `model_path` is set.
        """
        model = self.build_workflow(X_df)
        model.fit(X_df, np.asarray(y))
        self.final_model = model

        tree: CostComplexityTree = model.named_steps["tree"]
        self.logger.info(
            f"Final tree: depth={tree.get_depth()}, leaves={tree.get_n_leaves()}, "
            f"features={tree.n_features_in_}"
        )

        if self.model_path:
            os.makedirs(os.path.dirname(self.model_path) or ".", exist_ok=True)
            joblib.dump(model, self.model_path)
            self.logger.info(f"Saved model: {self.model_path}")

        return model

    def predict_proba_test(self, X_test_df: pd.DataFrame) -> np.ndarray:
        """
        Predict positive-class probabilities on a test dataframe with the final workflow.
        Assumes fit_final was called in the same process.
        """
        if self.final_model is None:
            raise RuntimeError("Call fit_final() before predict_proba_test().")

        return positive_proba(self.final_model, X_test_df, self.positive_label)
