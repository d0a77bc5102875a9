from __future__ import annotations

from typing import List, Optional, Tuple

import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.feature_selection import VarianceThreshold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, PowerTransformer, StandardScaler

from .imputer import GowerKNNImputer
from .utils.logger import get_logger


class Preprocessor:
    """Builds the feature pipeline: KNN impute, Yeo-Johnson, center/scale, one-hot, drop zero-variance."""

    def __init__(self, n_neighbors: int = 5, verbose: bool = False):
        """
        Parameters
        ----------
        n_neighbors:
            Number of donor rows used by the nearest-neighbour imputer.
        verbose:
            If True, logs detected feature groups.
        """
        self.n_neighbors = n_neighbors
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        self.transformer: Optional[Pipeline] = None

    @staticmethod
    def feature_groups(X: pd.DataFrame) -> Tuple[List[str], List[str]]:
        """Split predictor names into numeric and categorical columns."""
        numeric_cols = X.select_dtypes(include=["number"]).columns.tolist()
        categorical_cols = X.select_dtypes(include=["object", "string", "category", "bool"]).columns.tolist()
        return numeric_cols, categorical_cols

    def build(self, X: pd.DataFrame) -> Pipeline:
        """Build (but do not fit) the preprocessing pipeline for the columns of `X`."""
        numeric_cols, categorical_cols = self.feature_groups(X)
        if not numeric_cols and not categorical_cols:
            raise ValueError("No numeric or categorical predictors found")

        num_pipe = Pipeline(
            steps=[
                ("yeo_johnson", PowerTransformer(method="yeo-johnson", standardize=False)),
                ("center_scale", StandardScaler()),
            ]
        )

        encode = ColumnTransformer(
            transformers=[
                ("num", num_pipe, numeric_cols),
                ("cat", OneHotEncoder(handle_unknown="ignore", sparse_output=False), categorical_cols),
            ],
            remainder="drop",
            verbose_feature_names_out=False,
        )

        self.transformer = Pipeline(
            steps=[
                (
                    "impute",
                    GowerKNNImputer(
                        numeric_cols=numeric_cols,
                        categorical_cols=categorical_cols,
                        n_neighbors=self.n_neighbors,
                    ),
                ),
                ("encode", encode),
                ("zero_variance", VarianceThreshold(threshold=0.0)),
            ]
        )
        self.transformer.set_output(transform="pandas")

        if self.verbose:
            self.logger.info(
                f"Columns detected: numeric={len(numeric_cols)}, categorical={len(categorical_cols)}"
            )

        return self.transformer
