from typing import Optional

import numpy as np
import pandas as pd

TARGET_COL = "Status"
NUMERIC_COLS = [
    "Seniority", "Time", "Age", "Expenses", "Income", "Assets", "Debt", "Amount", "Price",
]
CATEGORICAL_COLS = ["Home", "Marital", "Records", "Job"]

_HOME = ["owner", "rent", "parents", "priv", "other", "ignore"]
_MARITAL = ["married", "single", "separated", "widow", "divorced"]
_JOB = ["fixed", "freelance", "partime", "others"]


def validate_dataset(df: pd.DataFrame, target_col: str = TARGET_COL) -> None:
    """Fail fast when the label column is absent, incomplete or not binary."""
    if target_col not in df.columns:
        raise ValueError(f"Label column '{target_col}' not found in dataset")

    labels = df[target_col]
    n_missing = int(labels.isna().sum())
    if n_missing:
        raise ValueError(f"Label column '{target_col}' has {n_missing} missing values")

    classes = labels.unique()
    if len(classes) != 2:
        raise ValueError(
            f"Label column '{target_col}' must hold exactly two classes, got {len(classes)}"
        )

    if df.drop(columns=[target_col]).shape[1] == 0:
        raise ValueError("Dataset has no predictor columns")


class DataLoader:
    """Loads a credit CSV dataset, validates its label and optionally samples rows."""

    def __init__(
        self,
        path: str,
        sample_size: Optional[int] = None,
        target_col: str = TARGET_COL,
        random_state: int = 42,
    ):
        self.path = path
        self.sample_size = sample_size
        self.target_col = target_col
        self.random_state = random_state

    def load(self) -> pd.DataFrame:
        df = pd.read_csv(self.path)
        if self.sample_size:
            df = df.sample(self.sample_size, random_state=self.random_state)
        validate_dataset(df, self.target_col)
        return df.reset_index(drop=True)


def simulate_credit_data(n_rows: int = 700, random_state: int = 42) -> pd.DataFrame:
    """
    Simulate a credit dataset with the `Status ~ .` schema of the tutorial data.

    Default risk rises with past payment records, part-time jobs, renting,
    a high loan-to-price ratio and low seniority/income. Income, Assets, Debt,
    Home, Marital and Job carry a few missing values.
    """
    if n_rows < 2:
        raise ValueError(f"n_rows must be at least 2, got {n_rows}")

    rng = np.random.RandomState(random_state)

    seniority = np.clip(rng.poisson(8, n_rows), 0, 48)
    home = rng.choice(_HOME, size=n_rows, p=[0.47, 0.22, 0.18, 0.06, 0.065, 0.005])
    time = rng.choice([12, 24, 36, 48, 60], size=n_rows, p=[0.1, 0.15, 0.2, 0.25, 0.3])
    age = np.clip(18 + rng.gamma(4.0, 5.0, n_rows), 18, 68).astype(int)
    marital = rng.choice(_MARITAL, size=n_rows, p=[0.72, 0.22, 0.03, 0.015, 0.015])
    records = rng.choice(["no", "yes"], size=n_rows, p=[0.83, 0.17])
    job = rng.choice(_JOB, size=n_rows, p=[0.63, 0.23, 0.1, 0.04])
    expenses = 35 + rng.poisson(20, n_rows)
    income = np.round(rng.lognormal(np.log(130), 0.45, n_rows))
    assets = np.where(rng.uniform(size=n_rows) < 0.35, 0, np.round(rng.exponential(5000, n_rows)))
    debt = np.where(rng.uniform(size=n_rows) < 0.85, 0, np.round(rng.exponential(1500, n_rows)))
    amount = 100 * np.maximum(np.round(rng.lognormal(np.log(1000), 0.45, n_rows) / 100), 1)
    price = np.round(amount * rng.uniform(1.1, 2.0, n_rows))

    logit = (
        -1.3
        + 1.2 * (records == "yes")
        + 0.8 * (job == "partime")
        + 0.4 * (home == "rent")
        - 0.08 * (seniority - 8)
        - 0.006 * (income - 130)
        + 3.0 * (amount / price - 0.7)
    )
    p_bad = 1.0 / (1.0 + np.exp(-logit))
    status = np.where(rng.uniform(size=n_rows) < p_bad, "bad", "good")

    df = pd.DataFrame(
        {
            "Status": status,
            "Seniority": seniority,
            "Home": home.astype(object),
            "Time": time,
            "Age": age,
            "Marital": marital.astype(object),
            "Records": records.astype(object),
            "Job": job.astype(object),
            "Expenses": expenses,
            "Income": income,
            "Assets": assets,
            "Debt": debt,
            "Amount": amount.astype(int),
            "Price": price.astype(int),
        }
    )

    missing_rates = {
        "Income": 0.08, "Assets": 0.01, "Debt": 0.005,
        "Home": 0.005, "Marital": 0.002, "Job": 0.002,
    }
    for col, rate in missing_rates.items():
        mask = rng.uniform(size=n_rows) < rate
        df.loc[mask, col] = np.nan

    return df
