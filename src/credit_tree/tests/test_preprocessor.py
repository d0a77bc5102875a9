import numpy as np
import pandas as pd
import pytest
from sklearn.pipeline import Pipeline

from credit_tree.preprocessor import Preprocessor


def _make_small_X(n_rows: int = 40) -> pd.DataFrame:
    rng = np.random.RandomState(0)
    X = pd.DataFrame(
        {
            # skewed numeric
            "Income": rng.lognormal(5.0, 0.5, n_rows),
            "Amount": rng.lognormal(7.0, 0.4, n_rows),
            "Seniority": rng.poisson(6, n_rows),

            # categorical
            "Home": rng.choice(["owner", "rent", "parents"], n_rows).astype(object),
            "Records": rng.choice(["no", "yes"], n_rows).astype(object),
        }
    )
    X.loc[[3, 17], "Income"] = np.nan
    X.loc[[5], "Home"] = np.nan
    return X


def test_preprocessor_build_returns_pipeline_with_fixed_step_order():
    transformer = Preprocessor().build(_make_small_X())

    assert isinstance(transformer, Pipeline)
    assert [name for name, _ in transformer.steps] == ["impute", "encode", "zero_variance"]

    encode = transformer.named_steps["encode"]
    names = [name for name, _, _ in encode.transformers]
    assert names == ["num", "cat"]
    num_steps = [name for name, _ in encode.transformers[0][1].steps]
    assert num_steps == ["yeo_johnson", "center_scale"]


def test_preprocessor_feature_groups():
    numeric, categorical = Preprocessor.feature_groups(_make_small_X())

    assert numeric == ["Income", "Amount", "Seniority"]
    assert categorical == ["Home", "Records"]


def test_preprocessor_fit_transform_has_no_missing_values_and_unit_variance():
    X = _make_small_X()
    Xt = Preprocessor(n_neighbors=3).build(X).fit_transform(X)

    assert isinstance(Xt, pd.DataFrame)
    assert Xt.shape[0] == X.shape[0]
    assert np.isfinite(Xt.to_numpy(dtype=float)).all()

    for col in ["Income", "Amount", "Seniority"]:
        assert np.mean(Xt[col]) == pytest.approx(0.0, abs=1e-6)
        assert np.std(Xt[col]) == pytest.approx(1.0, abs=1e-6)


def test_preprocessor_one_hot_columns_named_after_categories():
    X = _make_small_X()
    Xt = Preprocessor().build(X).fit_transform(X)

    assert {"Home_owner", "Home_rent", "Home_parents", "Records_no", "Records_yes"} <= set(Xt.columns)
    assert set(np.unique(Xt[["Records_no", "Records_yes"]].to_numpy())) <= {0.0, 1.0}


def test_preprocessor_transform_handles_unseen_categories():
    X_train = _make_small_X()
    X_test = pd.DataFrame(
        {
            "Income": [150.0],
            "Amount": [1200.0],
            "Seniority": [3],
            "Home": ["boat"],  # unseen category
            "Records": ["no"],
        }
    )

    transformer = Preprocessor().build(X_train)
    transformer.fit(X_train)
    Xt_test = transformer.transform(X_test)

    assert Xt_test.shape[0] == 1
    home_cols = [c for c in Xt_test.columns if c.startswith("Home_")]
    assert home_cols
    assert (Xt_test[home_cols].to_numpy() == 0).all()
    assert Xt_test.loc[Xt_test.index[0], "Records_no"] == 1.0


def test_preprocessor_drops_zero_variance_columns():
    X = _make_small_X()
    X["Channel"] = "branch"
    Xt = Preprocessor().build(X).fit_transform(X)

    assert "Channel_branch" not in Xt.columns
    assert "Home_owner" in Xt.columns


def test_preprocessor_held_out_rows_use_fit_statistics_only():
    X = _make_small_X(60)
    X_train, X_test = X.iloc[:40].reset_index(drop=True), X.iloc[40:].reset_index(drop=True)

    transformer = Preprocessor().build(X_train).fit(X_train)
    batch = transformer.transform(X_test).to_numpy(dtype=float)
    single = transformer.transform(X_test.iloc[[0]]).to_numpy(dtype=float)

    # a row is transformed the same way alone or inside a batch
    np.testing.assert_allclose(single[0], batch[0])
    # held-out columns are not re-standardised on themselves
    assert not np.allclose(batch[:, 0].std(), 1.0)


def test_preprocessor_applied_to_fit_set_reproduces_fit_columns():
    X = _make_small_X()
    transformer = Preprocessor().build(X)
    first = transformer.fit_transform(X)
    again = transformer.transform(X)

    assert list(first.columns) == list(again.columns)
    np.testing.assert_allclose(first.to_numpy(dtype=float), again.to_numpy(dtype=float))


def test_preprocessor_accepts_string_dtype_categoricals():
    X = _make_small_X()
    X["Home"] = X["Home"].astype("string")
    X["Records"] = X["Records"].astype("string")

    numeric, categorical = Preprocessor.feature_groups(X)
    assert categorical == ["Home", "Records"]

    Xt = Preprocessor().build(X).fit_transform(X)
    assert {"Home_owner", "Records_no", "Records_yes"} <= set(Xt.columns)
    assert not Xt.isna().any().any()
