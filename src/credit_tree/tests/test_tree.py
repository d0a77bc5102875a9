import numpy as np
import pandas as pd
import pytest
from sklearn.base import clone
from sklearn.exceptions import NotFittedError

from credit_tree.tree import CostComplexityTree, gini

# y = x0 OR x1: the root split ties between the two features
OR_X = np.array([[0, 0], [0, 1], [1, 0], [1, 1]], dtype=float)
OR_Y = np.array([0, 1, 1, 1])


def _noisy_data(n_rows: int = 200, seed: int = 0):
    rng = np.random.RandomState(seed)
    X = rng.normal(size=(n_rows, 4))
    logit = 1.5 * X[:, 0] - X[:, 1] + 0.5 * X[:, 2] * X[:, 3]
    y = np.where(rng.uniform(size=n_rows) < 1 / (1 + np.exp(-logit)), "bad", "good")
    return X, y


def test_gini():
    assert gini(np.array([5.0, 5.0])) == pytest.approx(0.5)
    assert gini(np.array([4.0, 0.0])) == 0.0
    assert gini(np.array([0.0, 0.0])) == 0.0


def test_separable_data_is_split_once():
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    y = np.array(["a", "a", "b", "b"])
    tree = CostComplexityTree(cost_complexity=0.0, max_depth=3, min_samples_split=2).fit(X, y)

    assert tree.get_n_leaves() == 2
    assert tree.get_depth() == 1
    assert tree.tree_.feature == 0
    assert tree.tree_.threshold == pytest.approx(1.5)
    np.testing.assert_array_equal(tree.predict(X), y)
    np.testing.assert_allclose(tree.predict_proba([[0.5], [2.5]]), [[1.0, 0.0], [0.0, 1.0]])


def test_max_depth_limits_growth():
    shallow = CostComplexityTree(cost_complexity=0.0, max_depth=1, min_samples_split=2).fit(OR_X, OR_Y)
    deep = CostComplexityTree(cost_complexity=0.0, max_depth=2, min_samples_split=2).fit(OR_X, OR_Y)

    assert shallow.get_depth() == 1 and shallow.get_n_leaves() == 2
    assert deep.get_depth() == 2 and deep.get_n_leaves() == 3
    np.testing.assert_array_equal(deep.predict(OR_X), OR_Y)


def test_ties_resolve_to_lowest_feature_index():
    tree = CostComplexityTree(cost_complexity=0.0, max_depth=2, min_samples_split=2).fit(OR_X, OR_Y)

    assert tree.tree_.feature == 0
    assert tree.tree_.left.feature == 1


def test_min_samples_split_stops_splitting():
    tree = CostComplexityTree(cost_complexity=0.0, max_depth=5, min_samples_split=5).fit(OR_X, OR_Y)

    assert tree.get_n_leaves() == 1
    np.testing.assert_allclose(tree.predict_proba(OR_X), [[0.25, 0.75]] * 4)


def test_cost_complexity_collapses_subtrees_below_the_penalty():
    # The depth-2 tree has 3 leaves and no errors, the root alone makes 1 error.
    # Collapsing to the root removes 2 leaves for a relative risk increase of 1.
    kept = CostComplexityTree(cost_complexity=0.4, max_depth=2, min_samples_split=2).fit(OR_X, OR_Y)
    pruned = CostComplexityTree(cost_complexity=0.6, max_depth=2, min_samples_split=2).fit(OR_X, OR_Y)

    assert kept.get_n_leaves() == 3
    assert kept.n_pruned_ == 0
    assert pruned.get_n_leaves() == 1
    assert pruned.n_pruned_ == 1


def test_pruning_only_reduces_the_tree():
    X, y = _noisy_data()
    full = CostComplexityTree(cost_complexity=0.0, max_depth=10, min_samples_split=2).fit(X, y)
    pruned = CostComplexityTree(cost_complexity=0.02, max_depth=10, min_samples_split=2).fit(X, y)

    assert pruned.get_n_leaves() < full.get_n_leaves()
    assert pruned.get_depth() <= full.get_depth()


def test_same_data_and_configuration_give_the_same_tree():
    X, y = _noisy_data()
    params = dict(cost_complexity=0.001, max_depth=6, min_samples_split=10)

    first = CostComplexityTree(**params).fit(X, y)
    second = CostComplexityTree(**params).fit(X.copy(), y.copy())

    assert first.tree_.to_dict() == second.tree_.to_dict()
    np.testing.assert_array_equal(first.predict_proba(X), second.predict_proba(X))


def test_predict_proba_rows_sum_to_one_and_follow_classes():
    X, y = _noisy_data()
    tree = CostComplexityTree(cost_complexity=0.0, max_depth=4, min_samples_split=20).fit(X, y)
    proba = tree.predict_proba(X)

    assert list(tree.classes_) == ["bad", "good"]
    assert proba.shape == (len(X), 2)
    np.testing.assert_allclose(proba.sum(axis=1), 1.0)
    np.testing.assert_array_equal(tree.predict(X), tree.classes_[proba.argmax(axis=1)])


def test_feature_importances_ignore_unused_features():
    X = np.column_stack([np.arange(10, dtype=float), np.zeros(10)])
    y = np.array([0] * 5 + [1] * 5)
    tree = CostComplexityTree(cost_complexity=0.0, max_depth=3).fit(X, y)

    np.testing.assert_allclose(tree.feature_importances_, [1.0, 0.0])


def test_dataframe_input_and_rules_use_column_names():
    X = pd.DataFrame({"Income": [10.0, 20.0, 30.0, 40.0], "Debt": [1.0, 1.0, 2.0, 2.0]})
    y = np.array(["good", "good", "bad", "bad"])
    tree = CostComplexityTree(cost_complexity=0.0, max_depth=2).fit(X, y)

    rules = tree.export_rules()
    assert len(rules) == tree.get_n_leaves() == 2
    assert rules[0].startswith("Income <= 25.0 -> good")
    assert rules[1].startswith("Income > 25.0 -> bad")
    np.testing.assert_array_equal(tree.feature_names_in_, ["Income", "Debt"])


@pytest.mark.parametrize(
    "params",
    [
        {"max_depth": 0},
        {"min_samples_split": 1},
        {"cost_complexity": -0.1},
        {"max_depth": 2.5},
    ],
)
def test_invalid_hyperparameters_raise_on_fit(params):
    with pytest.raises(ValueError):
        CostComplexityTree(**params).fit(OR_X, OR_Y)


def test_predict_before_fit_raises():
    with pytest.raises(NotFittedError):
        CostComplexityTree().predict(OR_X)


def test_feature_count_mismatch_raises():
    tree = CostComplexityTree(cost_complexity=0.0).fit(OR_X, OR_Y)
    with pytest.raises(ValueError, match="features"):
        tree.predict(np.zeros((2, 3)))


def test_clone_keeps_hyperparameters():
    tree = CostComplexityTree(cost_complexity=0.1, max_depth=15, min_samples_split=40)
    assert clone(tree).get_params() == {
        "cost_complexity": 0.1,
        "max_depth": 15,
        "min_samples_split": 40,
    }


def test_adjacent_float_values_still_split():
    low, high = 1.0 + 2.0 ** -52, 1.0 + 2.0 ** -51
    X = np.array([[low], [low], [high], [high]])
    y = np.array([0, 0, 1, 1])
    tree = CostComplexityTree(cost_complexity=0.0, max_depth=2, min_samples_split=2).fit(X, y)

    assert tree.get_n_leaves() == 2
    assert low <= tree.tree_.threshold < high
    assert tree.tree_.left.n_samples == 2 and tree.tree_.right.n_samples == 2
    np.testing.assert_allclose(tree.predict_proba(X), [[1.0, 0.0], [1.0, 0.0], [0.0, 1.0], [0.0, 1.0]])
    np.testing.assert_array_equal(tree.predict(X), y)
