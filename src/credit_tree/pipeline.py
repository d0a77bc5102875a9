from dataclasses import dataclass
from textwrap import indent
from typing import Any, Dict, Optional, Union

import pandas as pd
from sklearn.pipeline import Pipeline

from .config import Config
from .data_loader import DataLoader, simulate_credit_data, validate_dataset
from .evaluator import Evaluator
from .hyper_tuner import HyperTuner, TuningResult, regular_grid
from .model_trainer import ModelTrainer
from .splitter import DataSplit, DataSplitter
from .utils.logger import get_logger


@dataclass
class RunResult:
    """Everything a pipeline run produces."""
    split: DataSplit
    n_folds: int
    best_params: Dict[str, Any]
    tuning: Optional[TuningResult]
    test_metrics: Dict[str, float]
    roc_curve: pd.DataFrame
    model: Pipeline

    @property
    def test_roc_auc(self) -> float:
        return self.test_metrics["ROC_AUC"]


class PipelineRunner:
    """End-to-end credit-risk decision tree pipeline.

    Steps:
      1. Load the dataset (CSV) or simulate one with the credit schema
      2. Split once into train/test
      3. Partition the training rows into K folds
      4. Optionally grid-search tree hyperparameters with fold-wise preprocessing
      5. Refit preprocessing + tree on the full training set
      6. Score the untouched test set (ROC-AUC, ROC curve)"""

    def __init__(self, config: Union[str, Config]):
        self.config = Config.from_yaml(config) if isinstance(config, str) else config
        self.logger = get_logger(self.__class__.__name__)

    def load_data(self) -> pd.DataFrame:
        data_cfg = self.config.data
        random_state = self.config.validation.get("random_state", 42)
        if data_cfg.get("path"):
            return DataLoader(
                data_cfg["path"],
                sample_size=data_cfg.get("sample_size"),
                target_col=data_cfg.get("target_col", "Status"),
                random_state=random_state,
            ).load()
        return simulate_credit_data(data_cfg.get("n_rows", 700), random_state=random_state)

    def run(self, df: Optional[pd.DataFrame] = None) -> RunResult:
        cfg = self.config
        self.logger.info("Starting credit decision tree pipeline")

        target_col = cfg.data.get("target_col", "Status")
        positive_label = cfg.data.get("positive_label", "bad")
        random_state = cfg.validation.get("random_state", 42)
        n_folds = cfg.validation.get("n_folds", 5)
        prop = cfg.validation.get("prop", 0.75)
        strata = cfg.validation.get("strata")
        n_neighbors = cfg.preprocessing.get("n_neighbors", 5)

        if df is None:
            df = self.load_data()
        validate_dataset(df, target_col)
        if positive_label not in set(df[target_col]):
            raise ValueError(f"Positive label {positive_label!r} not found in '{target_col}'")
        self.logger.info(f"Loaded dataset: {df.shape[0]:,} rows x {df.shape[1]} cols")

        splitter = DataSplitter(random_state=random_state)
        split = splitter.initial_split(df, prop=prop, strata=strata)
        train_df = split.training(df)
        test_df = split.testing(df)
        folds = splitter.kfold(train_df, n_folds=n_folds, strata=strata)

        X_train = train_df.drop(columns=[target_col])
        y_train = train_df[target_col].to_numpy()
        X_test = test_df.drop(columns=[target_col])
        y_test = test_df[target_col].to_numpy()

        params = dict(cfg.model.get("params", {}))
        tuning: Optional[TuningResult] = None
        if cfg.model.get("tune", True):
            grid = regular_grid(levels=cfg.model.get("grid_levels", 2))
            tuner = HyperTuner(
                positive_label=positive_label,
                n_neighbors=n_neighbors,
                random_state=random_state,
            )
            tuning = tuner.tune(X_df=X_train, y=y_train, folds=folds, grid=grid)
            params.update(tuning.best_params)
            self.logger.info("Model parameters updated with tuned values")
        else:
            self.logger.info("Hyperparameter tuning disabled")

        trainer = ModelTrainer(
            params=params,
            positive_label=positive_label,
            n_neighbors=n_neighbors,
            model_path=cfg.output.get("model_path"),
        )
        model = trainer.fit_final(X_train, y_train)

        test_proba = trainer.predict_proba_test(X_test)
        evaluator = Evaluator(positive_label=positive_label, metrics_path=cfg.output.get("metrics_path"))
        metrics = evaluator.evaluate(y_test, test_proba)

        metrics_str = indent("\n".join(f"{k}: {v:.4f}" for k, v in metrics.items()), " " * 4)
        self.logger.info(f"Test metrics:\n{metrics_str}")
        self.logger.info("Pipeline finished")

        return RunResult(
            split=split,
            n_folds=len(folds),
            best_params=params,
            tuning=tuning,
            test_metrics=metrics,
            roc_curve=evaluator.roc_curve_,
            model=model,
        )
