"""
Credit Risk Decision Tree — Modular Machine Learning Pipeline

This package trains and evaluates a cost-complexity pruned decision tree
on tabular credit data with a seeded train/test split, K-fold
cross-validation, fold-wise preprocessing and a regular grid search.

Modules:
    config          — Load YAML configuration safely.
    data_loader     — Read, validate or simulate credit data.
    splitter        — Seeded train/test split and K-fold partitioning.
    imputer         — Gower-distance nearest-neighbour imputation.
    preprocessor    — Impute, power-transform, scale, encode, drop constants.
    tree            — Gini tree with cost-complexity pruning.
    model_trainer   — Fit the workflow with leakage-safe cross-validation.
    hyper_tuner     — Grid search over tree hyperparameters with Optuna.
    evaluator       — Test-set ROC-AUC and ROC curve.
    pipeline        — Orchestrates all components.
    utils.logger    — Unified timestamped console logger.
"""

from .config import Config
from .data_loader import DataLoader, simulate_credit_data, validate_dataset
from .splitter import DataSplit, DataSplitter, Fold
from .imputer import GowerKNNImputer
from .preprocessor import Preprocessor
from .tree import CostComplexityTree
from .model_trainer import ModelTrainer
from .hyper_tuner import HyperTuner, TuningResult, regular_grid
from .evaluator import Evaluator, roc_curve_points
from .pipeline import PipelineRunner, RunResult

__all__ = [
    "Config",
    "DataLoader",
    "simulate_credit_data",
    "validate_dataset",
    "DataSplit",
    "DataSplitter",
    "Fold",
    "GowerKNNImputer",
    "Preprocessor",
    "CostComplexityTree",
    "ModelTrainer",
    "HyperTuner",
    "TuningResult",
    "regular_grid",
    "Evaluator",
    "roc_curve_points",
    "PipelineRunner",
    "RunResult",
]
