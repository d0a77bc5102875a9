from __future__ import annotations

from typing import List, Optional

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted


class GowerKNNImputer(TransformerMixin, BaseEstimator):
    """
    Nearest-neighbour imputation for mixed numeric/categorical frames.

    Distances are Gower distances: range-normalised absolute differences for
    numeric columns, 0/1 mismatch for categorical columns, averaged over the
    columns observed in both rows. Donors always come from the data seen in
    `fit`, so transforming held-out rows never re-estimates anything from them.
    Numeric gaps get the donor mean, categorical gaps the donor mode.
    """

    def __init__(
        self,
        numeric_cols: Optional[List[str]] = None,
        categorical_cols: Optional[List[str]] = None,
        n_neighbors: int = 5,
    ):
        self.numeric_cols = numeric_cols
        self.categorical_cols = categorical_cols
        self.n_neighbors = n_neighbors

    def _encode(self, X: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
        """Numeric block scaled by the fit ranges, categorical block as vocabulary codes."""
        num = X[self.numeric_cols_].to_numpy(dtype=float)
        num = (num - self.num_min_) / self.num_range_

        cat = np.full((len(X), len(self.categorical_cols_)), np.nan)
        for j, col in enumerate(self.categorical_cols_):
            # values outside the fit vocabulary get code -1, which never matches a donor
            codes = pd.Categorical(X[col], categories=self.vocab_[col]).codes.astype(float)
            codes[X[col].isna().to_numpy()] = np.nan
            cat[:, j] = codes
        return num, cat

    def fit(self, X: pd.DataFrame, y=None) -> "GowerKNNImputer":
        if self.n_neighbors < 1:
            raise ValueError(f"n_neighbors must be >= 1, got {self.n_neighbors}")

        self.numeric_cols_ = list(self.numeric_cols or [])
        self.categorical_cols_ = list(self.categorical_cols or [])
        self.feature_names_in_ = np.asarray(self.numeric_cols_ + self.categorical_cols_, dtype=object)

        num = X[self.numeric_cols_].to_numpy(dtype=float)
        self.num_min_ = np.nan_to_num(np.nanmin(num, axis=0)) if num.size else np.zeros(0)
        num_max = np.nan_to_num(np.nanmax(num, axis=0)) if num.size else np.zeros(0)
        span = num_max - self.num_min_
        self.num_range_ = np.where(span > 0, span, 1.0)

        self.vocab_ = {
            col: sorted(X[col].dropna().astype(str).unique()) for col in self.categorical_cols_
        }
        fit_df = X[self.numeric_cols_ + self.categorical_cols_].copy()
        for col in self.categorical_cols_:
            fit_df[col] = fit_df[col].astype(object)
            fit_df[col] = fit_df[col].where(fit_df[col].isna(), fit_df[col].astype(str))
        self.donors_ = fit_df.reset_index(drop=True)
        self.donor_num_, self.donor_cat_ = self._encode(self.donors_)
        return self

    def _distances(self, num_row: np.ndarray, cat_row: np.ndarray) -> np.ndarray:
        num_diff = np.abs(self.donor_num_ - num_row)
        cat_diff = (self.donor_cat_ != cat_row).astype(float)
        cat_diff[np.isnan(self.donor_cat_) | np.isnan(cat_row)] = np.nan

        diffs = np.hstack([num_diff, cat_diff])
        n_shared = np.sum(~np.isnan(diffs), axis=1)
        total = np.nansum(diffs, axis=1)
        # donors sharing no observed column with the row are maximally distant
        return np.where(n_shared > 0, total / np.maximum(n_shared, 1), np.inf)

    def _impute_value(self, col: str, donor_pos: np.ndarray, is_numeric: bool):
        values = self.donors_[col].iloc[donor_pos]
        if is_numeric:
            return float(values.mean())
        counts = values.value_counts()
        # ties resolve to the alphabetically first category
        top = counts[counts == counts.max()].index
        return sorted(top)[0]

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, "donors_")
        out = X[self.numeric_cols_ + self.categorical_cols_].copy()
        for col in self.categorical_cols_:
            values = out[col].astype(object)
            out[col] = values.where(values.isna(), values.astype(str))
        for col in self.numeric_cols_:
            out[col] = out[col].astype(float)

        missing = out.isna().to_numpy()
        rows_with_gaps = np.flatnonzero(missing.any(axis=1))
        if len(rows_with_gaps) == 0:
            return out

        num, cat = self._encode(out)
        columns = self.numeric_cols_ + self.categorical_cols_
        filled = out.copy()

        for i in rows_with_gaps:
            dist = self._distances(num[i], cat[i])
            for j in np.flatnonzero(missing[i]):
                col = columns[j]
                has_value = self.donors_[col].notna().to_numpy()
                candidates = np.flatnonzero(has_value & np.isfinite(dist))
                if len(candidates) == 0:
                    candidates = np.flatnonzero(has_value)
                if len(candidates) == 0:
                    raise ValueError(f"Column '{col}' has no observed values to impute from")
                # stable sort keeps donor order on equal distances
                order = np.argsort(dist[candidates], kind="stable")
                donor_pos = candidates[order[: self.n_neighbors]]
                filled.iat[i, j] = self._impute_value(col, donor_pos, j < len(self.numeric_cols_))

        return filled

    def get_feature_names_out(self, input_features=None) -> np.ndarray:
        check_is_fitted(self, "donors_")
        return self.feature_names_in_.copy()
