from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, StratifiedKFold, train_test_split

from .utils.logger import get_logger


@dataclass(frozen=True, eq=False)
class DataSplit:
    """Row positions of a one-off train/test partition."""
    train_idx: np.ndarray
    test_idx: np.ndarray

    def training(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.train_idx].reset_index(drop=True)

    def testing(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.test_idx].reset_index(drop=True)


@dataclass(frozen=True, eq=False)
class Fold:
    """One resample: fit on `analysis_idx`, score on `assessment_idx`."""
    fold_id: int
    analysis_idx: np.ndarray
    assessment_idx: np.ndarray


class DataSplitter:
    """Seeded train/test split and K-fold partitioning of the training rows."""

    def __init__(self, random_state: int = 42):
        self.random_state = random_state
        self.logger = get_logger(self.__class__.__name__)

    @staticmethod
    def _strata_values(df: pd.DataFrame, strata: Optional[str]) -> Optional[np.ndarray]:
        if strata is None:
            return None
        if strata not in df.columns:
            raise ValueError(f"Strata column '{strata}' not found")
        return df[strata].to_numpy()

    def initial_split(
        self,
        df: pd.DataFrame,
        prop: float = 0.75,
        strata: Optional[str] = None,
    ) -> DataSplit:
        """Partition rows into train/test; `prop` is the training share."""
        if not 0.0 < prop < 1.0:
            raise ValueError(f"prop must be in (0, 1), got {prop}")

        n_rows = len(df)
        n_train = int(np.floor(prop * n_rows))
        if n_train < 1 or n_train >= n_rows:
            raise ValueError(
                f"prop={prop} leaves an empty train or test set for {n_rows} rows"
            )

        positions = np.arange(n_rows)
        train_idx, test_idx = train_test_split(
            positions,
            train_size=n_train,
            random_state=self.random_state,
            shuffle=True,
            stratify=self._strata_values(df, strata),
        )
        split = DataSplit(train_idx=np.sort(train_idx), test_idx=np.sort(test_idx))

        self.logger.info(f"Initial split: {len(split.train_idx)} train / {len(split.test_idx)} test")
        return split

    def kfold(
        self,
        train_df: pd.DataFrame,
        n_folds: int = 5,
        strata: Optional[str] = None,
    ) -> List[Fold]:
        """Partition the training rows into `n_folds` disjoint assessment sets."""
        n_rows = len(train_df)
        if n_folds < 2:
            raise ValueError(f"n_folds must be at least 2, got {n_folds}")
        if n_folds > n_rows:
            raise ValueError(f"n_folds={n_folds} exceeds the number of rows ({n_rows})")

        y_strata = self._strata_values(train_df, strata)
        if y_strata is None:
            splitter = KFold(n_splits=n_folds, shuffle=True, random_state=self.random_state)
        else:
            splitter = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=self.random_state)

        positions = np.arange(n_rows)
        folds = [
            Fold(fold_id=fold_id, analysis_idx=analysis_idx, assessment_idx=assessment_idx)
            for fold_id, (analysis_idx, assessment_idx) in enumerate(
                splitter.split(positions, y_strata), start=1
            )
        ]

        sizes = ", ".join(str(len(f.assessment_idx)) for f in folds)
        self.logger.info(f"{n_folds}-fold CV on {n_rows} rows (assessment sizes: {sizes})")
        return folds
