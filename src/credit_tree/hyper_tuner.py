import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import optuna
import pandas as pd

from .model_trainer import ModelTrainer
from .splitter import Fold
from .utils.logger import get_logger

PARAM_NAMES = ("cost_complexity", "max_depth", "min_samples_split")


@dataclass(frozen=True)
class ParamRange:
    """Closed range of one hyperparameter; `log10` ranges are given as exponents."""
    low: float
    high: float
    log10: bool = False
    integer: bool = False

    def levels(self, n: int) -> List[Union[int, float]]:
        values = np.linspace(self.low, self.high, n)
        if self.log10:
            values = 10.0 ** values
        if self.integer:
            out = [int(round(v)) for v in values]
        else:
            out = [float(v) for v in values]
        # duplicated levels (narrow integer ranges) are evaluated once
        return list(dict.fromkeys(out))


DEFAULT_RANGES: Dict[str, ParamRange] = {
    "cost_complexity": ParamRange(-10.0, -1.0, log10=True),
    "max_depth": ParamRange(1, 15, integer=True),
    "min_samples_split": ParamRange(2, 40, integer=True),
}


def regular_grid(
    levels: Union[int, Mapping[str, int]] = 2,
    ranges: Optional[Mapping[str, ParamRange]] = None,
) -> List[Dict[str, Any]]:
    """
    Regular grid over cost_complexity, max_depth and min_samples_split.

    `levels` is either one count for every parameter or a per-parameter mapping.
    Configurations are enumerated with cost_complexity varying slowest.
    """
    ranges = {**DEFAULT_RANGES, **(ranges or {})}
    unknown = set(ranges) - set(PARAM_NAMES)
    if unknown:
        raise ValueError(f"Unknown hyperparameters in ranges: {sorted(unknown)}")

    if isinstance(levels, Mapping):
        per_param = {name: levels.get(name, 2) for name in PARAM_NAMES}
    else:
        per_param = {name: levels for name in PARAM_NAMES}
    for name, n in per_param.items():
        if not isinstance(n, int) or n < 1:
            raise ValueError(f"levels for {name} must be a positive integer, got {n!r}")

    axes = [ranges[name].levels(per_param[name]) for name in PARAM_NAMES]
    return [dict(zip(PARAM_NAMES, combo)) for combo in itertools.product(*axes)]


@dataclass
class TuningResult:
    """Per-configuration CV summary plus the selected configuration."""
    table: pd.DataFrame
    fold_scores: pd.DataFrame
    best_config_id: int
    best_params: Dict[str, Any]
    best_value: float

    def show_best(self, n: int = 5) -> pd.DataFrame:
        """Top `n` configurations by mean ROC-AUC (ties in enumeration order)."""
        ranked = self.table.sort_values(
            ["mean_roc_auc", "config_id"], ascending=[False, True], na_position="last"
        )
        return ranked.head(n).reset_index(drop=True)


class HyperTuner:
    """Grid search over tree hyperparameters using leakage-safe CV from ModelTrainer."""

    def __init__(
        self,
        positive_label: Any,
        n_neighbors: int = 5,
        random_state: int = 42,
    ):
        self.positive_label = positive_label
        self.n_neighbors = n_neighbors
        self.random_state = random_state
        self.logger = get_logger(self.__class__.__name__)
        self.best_params_: dict[str, Any] | None = None
        self.best_value_: float | None = None

    @staticmethod
    def _summarize(config_id: int, params: Dict[str, Any], fold_scores: pd.DataFrame) -> Dict[str, Any]:
        scored = fold_scores.loc[~fold_scores["excluded"], "roc_auc"]
        n_scored = len(scored)
        return {
            "config_id": config_id,
            **params,
            "mean_roc_auc": float(scored.mean()) if n_scored else np.nan,
            "std_err": float(scored.std(ddof=1) / np.sqrt(n_scored)) if n_scored > 1 else np.nan,
            "n_scored": n_scored,
            "n_excluded": int(fold_scores["excluded"].sum()),
            "mean_accuracy": float(fold_scores["accuracy"].mean()),
        }

    def tune(
        self,
        X_df: pd.DataFrame,
        y: np.ndarray,
        folds: Sequence[Fold],
        grid: Sequence[Dict[str, Any]],
    ) -> TuningResult:
        """
        Cross-validate every grid configuration and select the best mean ROC-AUC.
        Each configuration is one Optuna trial driven by a GridSampler.
        """
        if not grid:
            raise ValueError("Hyperparameter grid is empty")
        if not folds:
            raise ValueError("No folds to cross-validate on")

        self.logger.info(
            f"Starting grid search ({len(grid)} configurations, {len(folds)}-fold CV)"
        )

        y = np.asarray(y)
        config_ids = list(range(len(grid)))
        summaries: Dict[int, Dict[str, Any]] = {}
        per_fold: Dict[int, pd.DataFrame] = {}

        trainer_logger = get_logger(ModelTrainer.__name__)
        previous_level = trainer_logger.level
        # reduce log noise during tuning
        trainer_logger.setLevel(logging.WARNING)
        previous_verbosity = optuna.logging.get_verbosity()
        optuna.logging.set_verbosity(optuna.logging.WARNING)

        def objective(trial: optuna.Trial) -> float:
            config_id = trial.suggest_categorical("config_id", config_ids)
            params = dict(grid[config_id])

            trainer = ModelTrainer(
                params=params,
                positive_label=self.positive_label,
                n_neighbors=self.n_neighbors,
            )
            mean_auc, fold_scores = trainer.cross_validate(X_df=X_df, y=y, folds=folds)

            summaries[config_id] = self._summarize(config_id, params, fold_scores)
            per_fold[config_id] = fold_scores.assign(config_id=config_id)
            self.logger.info(f"Config {config_id} {params}: mean ROC-AUC {mean_auc:.4f}")

            if np.isnan(mean_auc):
                raise optuna.TrialPruned(f"No fold produced a ROC-AUC for config {config_id}")
            return mean_auc

        sampler = optuna.samplers.GridSampler({"config_id": config_ids}, seed=self.random_state)
        study = optuna.create_study(direction="maximize", sampler=sampler)
        try:
            study.optimize(objective, n_trials=len(config_ids))
        finally:
            trainer_logger.setLevel(previous_level)
            optuna.logging.set_verbosity(previous_verbosity)

        table = pd.DataFrame([summaries[i] for i in sorted(summaries)])
        fold_scores = pd.concat([per_fold[i] for i in sorted(per_fold)], ignore_index=True)

        scorable = table.dropna(subset=["mean_roc_auc"])
        if scorable.empty:
            raise RuntimeError("No configuration produced a defined ROC-AUC on any fold")

        # idxmax keeps the first maximum, i.e. the earliest enumerated configuration
        best_row = table.loc[scorable["mean_roc_auc"].idxmax()]
        self.best_params_ = dict(grid[int(best_row["config_id"])])
        self.best_value_ = float(best_row["mean_roc_auc"])

        self.logger.info(f"Best CV ROC-AUC: {self.best_value_:.4f}")
        self.logger.info(f"Best parameters: {self.best_params_}")

        return TuningResult(
            table=table,
            fold_scores=fold_scores,
            best_config_id=int(best_row["config_id"]),
            best_params=dict(self.best_params_),
            best_value=self.best_value_,
        )
