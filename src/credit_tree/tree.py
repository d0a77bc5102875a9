"""
Cost-complexity pruned classification tree.

`CostComplexityTree` grows a binary CART-style tree with the Gini criterion
and then applies weakest-link pruning controlled by `cost_complexity`. It
follows the scikit-learn estimator API so it can sit at the end of a
`sklearn.pipeline.Pipeline` next to the preprocessing steps.
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Integral, Real
from typing import List, Optional, Sequence

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.utils.validation import check_array, check_is_fitted, check_X_y

# Impurity decreases at or below this are treated as no improvement.
_MIN_IMPURITY_DECREASE = 1e-12


def gini(counts: np.ndarray) -> float:
    """Gini impurity of a vector of class counts."""
    n = counts.sum()
    if n == 0:
        return 0.0
    p = counts / n
    return float(1.0 - np.sum(p * p))


@dataclass
class TreeNode:
    """A node of a fitted tree. Leaves have no children."""
    counts: np.ndarray
    depth: int
    impurity: float
    feature: Optional[int] = None
    threshold: Optional[float] = None
    left: Optional["TreeNode"] = None
    right: Optional["TreeNode"] = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    @property
    def n_samples(self) -> int:
        return int(self.counts.sum())

    @property
    def errors(self) -> int:
        """Rows misclassified when this node predicts its majority class."""
        return int(self.counts.sum() - self.counts.max())

    @property
    def proba(self) -> np.ndarray:
        return self.counts / self.counts.sum()

    def leaves(self) -> List["TreeNode"]:
        if self.is_leaf:
            return [self]
        return self.left.leaves() + self.right.leaves()

    def internal_nodes(self) -> List["TreeNode"]:
        """Non-leaf nodes in pre-order."""
        if self.is_leaf:
            return []
        return [self] + self.left.internal_nodes() + self.right.internal_nodes()

    def collapse(self) -> None:
        self.feature = None
        self.threshold = None
        self.left = None
        self.right = None

    def to_dict(self) -> dict:
        """Plain nested representation, handy for comparing tree structures."""
        node = {"counts": self.counts.tolist(), "depth": self.depth}
        if not self.is_leaf:
            node.update(
                feature=self.feature,
                threshold=self.threshold,
                left=self.left.to_dict(),
                right=self.right.to_dict(),
            )
        return node


class CostComplexityTree(ClassifierMixin, BaseEstimator):
    """
    Binary classification tree with Gini splits and cost-complexity pruning.

    Parameters
    ----------
    cost_complexity:
        Pruning penalty (alpha). Node risk is its misclassification count
        relative to the root's; a subtree is collapsed when removing it raises
        the risk by less than `cost_complexity` per removed leaf. 0 disables
        pruning.
    max_depth:
        Maximum depth; the root is depth 0, so `max_depth=1` allows one split.
    min_samples_split:
        Minimum number of rows a node needs before a split is attempted.
    """

    def __init__(
        self,
        cost_complexity: float = 0.01,
        max_depth: int = 30,
        min_samples_split: int = 2,
    ):
        self.cost_complexity = cost_complexity
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split

    def _check_params(self) -> None:
        if not isinstance(self.max_depth, Integral) or self.max_depth < 1:
            raise ValueError(f"max_depth must be an integer >= 1, got {self.max_depth!r}")
        if not isinstance(self.min_samples_split, Integral) or self.min_samples_split < 2:
            raise ValueError(
                f"min_samples_split must be an integer >= 2, got {self.min_samples_split!r}"
            )
        if not isinstance(self.cost_complexity, Real) or self.cost_complexity < 0:
            raise ValueError(f"cost_complexity must be >= 0, got {self.cost_complexity!r}")

    # ------------------------------------------------------------------
    # Growing
    # ------------------------------------------------------------------

    def _best_split(self, X: np.ndarray, y: np.ndarray) -> Optional[tuple[int, float, float]]:
        """Return (feature, threshold, weighted child impurity) of the best split, or None."""
        n_samples, n_features = X.shape
        n_classes = len(self.classes_)
        n_left = np.arange(1, n_samples)[:, None]
        n_right = n_samples - n_left

        best: Optional[tuple[int, float, float]] = None
        for feature in range(n_features):
            order = np.argsort(X[:, feature], kind="stable")
            xs = X[order, feature]
            distinct = xs[1:] > xs[:-1]
            if not distinct.any():
                continue

            left_counts = np.cumsum(np.eye(n_classes)[y[order]], axis=0)[:-1]
            right_counts = left_counts[-1] + np.eye(n_classes)[y[order[-1]]] - left_counts

            gini_left = 1.0 - np.sum((left_counts / n_left) ** 2, axis=1)
            gini_right = 1.0 - np.sum((right_counts / n_right) ** 2, axis=1)
            weighted = (n_left[:, 0] * gini_left + n_right[:, 0] * gini_right) / n_samples
            weighted[~distinct] = np.inf

            pos = int(np.argmin(weighted))
            if best is None or weighted[pos] < best[2]:
                threshold = float((xs[pos] + xs[pos + 1]) / 2.0)
                # the midpoint of adjacent floats can round up to the right value
                if threshold >= xs[pos + 1]:
                    threshold = float(xs[pos])
                best = (feature, threshold, float(weighted[pos]))

        return best

    def _grow(self, X: np.ndarray, y: np.ndarray, depth: int) -> TreeNode:
        counts = np.bincount(y, minlength=len(self.classes_)).astype(float)
        node = TreeNode(counts=counts, depth=depth, impurity=gini(counts))

        if (
            depth >= self.max_depth
            or node.n_samples < self.min_samples_split
            or node.impurity == 0.0
        ):
            return node

        split = self._best_split(X, y)
        if split is None or node.impurity - split[2] <= _MIN_IMPURITY_DECREASE:
            return node

        feature, threshold, _ = split
        go_left = X[:, feature] <= threshold
        node.feature = feature
        node.threshold = threshold
        node.left = self._grow(X[go_left], y[go_left], depth + 1)
        node.right = self._grow(X[~go_left], y[~go_left], depth + 1)
        return node

    # ------------------------------------------------------------------
    # Pruning
    # ------------------------------------------------------------------

    def _prune(self, root: TreeNode) -> int:
        """Weakest-link pruning in place. Returns the number of collapsed subtrees."""
        root_errors = root.errors
        if root_errors == 0 or self.cost_complexity == 0:
            return 0

        n_collapsed = 0
        while not root.is_leaf:
            weakest, weakest_g = None, np.inf
            for node in root.internal_nodes():
                leaves = node.leaves()
                subtree_errors = sum(leaf.errors for leaf in leaves)
                g = (node.errors - subtree_errors) / (root_errors * (len(leaves) - 1))
                if g < weakest_g:
                    weakest, weakest_g = node, g

            if weakest_g >= self.cost_complexity:
                break
            weakest.collapse()
            n_collapsed += 1

        return n_collapsed

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fit(self, X, y) -> "CostComplexityTree":
        self._check_params()

        if hasattr(X, "columns"):
            self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        elif hasattr(self, "feature_names_in_"):
            del self.feature_names_in_

        X, y = check_X_y(X, y, dtype=np.float64)
        self.n_features_in_ = X.shape[1]
        self.classes_, y_encoded = np.unique(y, return_inverse=True)

        root = self._grow(X, y_encoded, depth=0)
        self.n_pruned_ = self._prune(root)
        self.tree_ = root
        self.feature_importances_ = self._compute_importances()
        return self

    def _compute_importances(self) -> np.ndarray:
        importances = np.zeros(self.n_features_in_)
        for node in self.tree_.internal_nodes():
            decrease = (
                node.n_samples * node.impurity
                - node.left.n_samples * node.left.impurity
                - node.right.n_samples * node.right.impurity
            )
            importances[node.feature] += decrease
        total = importances.sum()
        return importances / total if total > 0 else importances

    def _validate_X(self, X) -> np.ndarray:
        check_is_fitted(self, "tree_")
        X = check_array(X, dtype=np.float64)
        if X.shape[1] != self.n_features_in_:
            raise ValueError(
                f"X has {X.shape[1]} features, but the tree was fitted with {self.n_features_in_}"
            )
        return X

    def _route(self, node: TreeNode, X: np.ndarray, rows: np.ndarray, out: np.ndarray) -> None:
        if node.is_leaf:
            out[rows] = node.proba
            return
        go_left = X[rows, node.feature] <= node.threshold
        self._route(node.left, X, rows[go_left], out)
        self._route(node.right, X, rows[~go_left], out)

    def predict_proba(self, X) -> np.ndarray:
        """Class distribution of the leaf each row falls into, columns ordered as `classes_`."""
        X = self._validate_X(X)
        out = np.zeros((X.shape[0], len(self.classes_)))
        self._route(self.tree_, X, np.arange(X.shape[0]), out)
        return out

    def predict(self, X) -> np.ndarray:
        proba = self.predict_proba(X)
        return self.classes_[np.argmax(proba, axis=1)]

    def get_depth(self) -> int:
        check_is_fitted(self, "tree_")
        return max(leaf.depth for leaf in self.tree_.leaves())

    def get_n_leaves(self) -> int:
        check_is_fitted(self, "tree_")
        return len(self.tree_.leaves())

    def export_rules(self, feature_names: Optional[Sequence[str]] = None, precision: int = 4) -> List[str]:
        """One readable rule per leaf, e.g. ``Records_yes > 0.5 -> bad (p=0.61, n=83)``."""
        check_is_fitted(self, "tree_")
        if feature_names is None:
            feature_names = getattr(self, "feature_names_in_", None)
        if feature_names is None:
            feature_names = [f"x{i}" for i in range(self.n_features_in_)]

        rules: List[str] = []

        def walk(node: TreeNode, path: List[str]) -> None:
            if node.is_leaf:
                top = int(np.argmax(node.counts))
                condition = " & ".join(path) if path else "(all rows)"
                rules.append(
                    f"{condition} -> {self.classes_[top]} "
                    f"(p={node.proba[top]:.2f}, n={node.n_samples})"
                )
                return
            name = feature_names[node.feature]
            thr = round(node.threshold, precision)
            walk(node.left, path + [f"{name} <= {thr}"])
            walk(node.right, path + [f"{name} > {thr}"])

        walk(self.tree_, [])
        return rules
