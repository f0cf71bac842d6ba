"""
K-Means Segmenter

Lloyd iterations on a standardized matrix with seeded initialisation,
empty-cluster reseeding and elbow diagnostics. Every stochastic step draws
from an explicit ``numpy.random.Generator``, so identical input and seed
give identical assignments.
"""

import warnings
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy.spatial.distance import cdist
from sklearn.exceptions import ConvergenceWarning
from sklearn.metrics import silhouette_score

from .data.dataset import FeatureMatrix
from .logger import get_logger
from .models.params import InitMethod, KMeansParams
from .models.results import KMeansResult
from .validators import ValidationError, validate_array, validate_feature_names

logger = get_logger(__name__)

MatrixLike = Union[np.ndarray, FeatureMatrix]

ELBOW_COLUMNS = ['k', 'total_within_ss', 'monotone', 'silhouette']


def _as_array(matrix: MatrixLike) -> np.ndarray:
    if isinstance(matrix, FeatureMatrix):
        return matrix.values
    return np.asarray(matrix, dtype=float)


def _initial_centroids(X: np.ndarray, k: int, rng: np.random.Generator, init: str) -> np.ndarray:
    n = X.shape[0]
    if InitMethod(init) == InitMethod.RANDOM:
        return X[rng.choice(n, size=k, replace=False)].copy()

    # k-means++: each new centroid drawn with probability proportional to
    # the squared distance to the nearest centroid chosen so far.
    chosen = [int(rng.integers(n))]
    closest = cdist(X, X[chosen], 'sqeuclidean').ravel()
    for _ in range(1, k):
        total = closest.sum()
        if total > 0:
            index = int(rng.choice(n, p=closest / total))
        else:
            index = int(rng.integers(n))
        chosen.append(index)
        closest = np.minimum(closest, cdist(X, X[[index]], 'sqeuclidean').ravel())
    return X[chosen].copy()


def _reseed_empty(
    X: np.ndarray,
    labels: np.ndarray,
    distances: np.ndarray,
    centroids: np.ndarray
) -> int:
    """Move each empty cluster onto the row farthest from its own centroid; returns the count."""
    k = centroids.shape[0]
    counts = np.bincount(labels, minlength=k)
    empty = np.flatnonzero(counts == 0)
    if len(empty) == 0:
        return 0

    own = distances[np.arange(len(labels)), labels].copy()
    for cluster in empty:
        # Only take rows whose cluster keeps at least one other member.
        candidates = np.where(counts[labels] > 1, own, -np.inf)
        row = int(np.argmax(candidates))
        logger.warning(f"Cluster {cluster + 1} is empty; reseeding to record {row}")
        counts[labels[row]] -= 1
        counts[cluster] += 1
        labels[row] = cluster
        centroids[cluster] = X[row]
        own[row] = -np.inf
    return len(empty)


def _within_ss(X: np.ndarray, labels: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    k = centroids.shape[0]
    squared = ((X - centroids[labels]) ** 2).sum(axis=1)
    return np.bincount(labels, weights=squared, minlength=k)


def run_kmeans(
    matrix: MatrixLike,
    n_clusters: int,
    rng: np.random.Generator,
    max_iter: int = 100,
    tol: float = 1e-4,
    init: str = InitMethod.KMEANS_PLUS_PLUS.value
) -> KMeansResult:
    """
    One seeded k-means run.

    Stops when no label changes, when the total within-cluster sum of
    squares improves by less than ``tol``, or at ``max_iter``. Hitting the
    cap emits a ConvergenceWarning and returns the best iterate seen.

    Args:
        matrix: Standardized matrix (rows = records)
        n_clusters: Number of clusters k
        rng: Generator used for initialisation
        max_iter: Iteration cap
        tol: Minimum objective improvement to keep iterating
        init: 'k-means++' or 'random'

    Returns:
        KMeansResult with labels 1..k in row order

    Example:
        >>> result = run_kmeans(np.array([[1.], [2.], [8.], [9.]]), 2, np.random.default_rng(0))
        >>> sorted(result.centroids.ravel().tolist())
        [1.5, 8.5]
    """
    X = _as_array(matrix)
    validate_array(X, name="matrix")
    n = X.shape[0]
    if not 1 <= n_clusters <= n:
        raise ValidationError(
            "Number of clusters out of range",
            field="n_clusters",
            expected=f"1 <= k <= {n} (number of records)",
            actual=f"k = {n_clusters}",
            fix="Lower n_clusters or provide more records"
        )

    centroids = _initial_centroids(X, n_clusters, rng, init)
    labels = np.full(n, -1)
    best: Optional[Tuple[float, np.ndarray, np.ndarray]] = None
    previous_objective = np.inf
    n_reseeds = 0
    converged = False
    iteration = 0

    for iteration in range(1, max_iter + 1):
        distances = cdist(X, centroids, 'sqeuclidean')
        new_labels = np.argmin(distances, axis=1)
        n_reseeds += _reseed_empty(X, new_labels, distances, centroids)

        unchanged = np.array_equal(new_labels, labels)
        labels = new_labels
        centroids = np.vstack([X[labels == c].mean(axis=0) for c in range(n_clusters)])
        objective = float(_within_ss(X, labels, centroids).sum())

        if best is None or objective < best[0]:
            best = (objective, labels.copy(), centroids.copy())

        if unchanged or previous_objective - objective < tol:
            converged = True
            break
        previous_objective = objective

    if not converged:
        message = (
            f"k-means with k={n_clusters} did not converge in {max_iter} iterations; "
            f"returning the best iterate"
        )
        logger.warning(message)
        warnings.warn(message, ConvergenceWarning)
        _, labels, centroids = best

    within = _within_ss(X, labels, centroids)
    return KMeansResult(
        n_clusters=n_clusters,
        labels=labels + 1,
        centroids=centroids,
        total_within_ss=float(within.sum()),
        within_ss=within.tolist(),
        n_iter=iteration,
        converged=converged,
        n_reseeds=n_reseeds,
    )


def elbow_curve(
    matrix: MatrixLike,
    k_max: int,
    seed: int,
    max_iter: int = 100,
    tol: float = 1e-4,
    init: str = InitMethod.KMEANS_PLUS_PLUS.value
) -> pd.DataFrame:
    """
    Total within-cluster sum of squares for k = 1..k_max.

    Each k runs with a fresh generator built from ``seed``. A curve that
    rises from one k to the next is a convergence artifact: it is flagged
    in the ``monotone`` column and logged, never corrected. Silhouette
    scores are reported for k >= 2.

    Returns:
        DataFrame with columns k, total_within_ss, monotone, silhouette
    """
    X = _as_array(matrix)
    validate_array(X, name="matrix")
    if k_max > X.shape[0]:
        logger.warning(f"k_max={k_max} exceeds the {X.shape[0]} records; capping the elbow range")
        k_max = X.shape[0]

    rows = []
    previous = np.inf
    for k in range(1, k_max + 1):
        result = run_kmeans(X, k, np.random.default_rng(seed), max_iter=max_iter, tol=tol, init=init)

        monotone = k == 1 or result.total_within_ss <= previous + 1e-9 * max(1.0, previous)
        if not monotone:
            logger.warning(
                f"Elbow curve increases at k={k} "
                f"({previous:.4f} -> {result.total_within_ss:.4f}); local optimum of k-means"
            )

        n_labels = len(np.unique(result.labels))
        silhouette = np.nan
        if 2 <= n_labels <= X.shape[0] - 1:
            silhouette = float(silhouette_score(X, result.labels))

        rows.append({
            'k': k,
            'total_within_ss': result.total_within_ss,
            'monotone': bool(monotone),
            'silhouette': silhouette,
        })
        previous = result.total_within_ss

    return pd.DataFrame(rows, columns=ELBOW_COLUMNS)


def choose_k_by_elbow(curve: pd.DataFrame) -> int:
    """k at the sharpest bend: the largest second difference of the curve."""
    wss = curve['total_within_ss'].to_numpy()
    ks = curve['k'].to_numpy()
    if len(wss) < 3:
        return int(ks[-1])
    second = wss[:-2] - 2 * wss[1:-1] + wss[2:]
    return int(ks[1 + int(np.argmax(second))])


class KMeansSegmenter:
    """
    Unsupervised segmentation by k-means.

    Example:
        >>> segmenter = KMeansSegmenter(KMeansParams(n_clusters=4), rng=np.random.default_rng(42))
        >>> segmenter.fit(scaled_matrix)
        >>> assignment = segmenter.assignment(dataset.index)
    """

    ASSIGNMENT_NAME = 'cluster_segment'

    def __init__(self, params: Optional[KMeansParams] = None, rng: Optional[np.random.Generator] = None):
        self.params = params or KMeansParams()
        self.rng = rng if rng is not None else np.random.default_rng(0)
        self.result_: Optional[KMeansResult] = None
        self.columns_: Optional[List[str]] = None

    def fit(self, matrix: MatrixLike):
        """
        Cluster the standardized ``matrix``.

        Returns:
            self
        """
        X = _as_array(matrix)
        names = list(matrix.columns) if isinstance(matrix, FeatureMatrix) else None
        self.columns_ = validate_feature_names(names, X.shape[1])

        logger.info(f"Running k-means with k={self.params.n_clusters} on {X.shape[0]:,} records")
        self.result_ = run_kmeans(
            X,
            self.params.n_clusters,
            self.rng,
            max_iter=self.params.max_iter,
            tol=self.params.tol,
            init=self.params.init,
        )
        logger.info(f"  {self.result_.get_summary()}")
        return self

    def _check_fitted(self) -> None:
        if self.result_ is None:
            raise RuntimeError("KMeansSegmenter must be fitted before use. Call fit() first.")

    @property
    def labels_(self) -> np.ndarray:
        self._check_fitted()
        return self.result_.labels

    def predict(self, matrix: MatrixLike) -> np.ndarray:
        """Nearest-centroid cluster id (1..k) of new standardized rows."""
        self._check_fitted()
        X = _as_array(matrix)
        validate_array(X, name="matrix")
        return np.argmin(cdist(X, self.result_.centroids, 'sqeuclidean'), axis=1) + 1

    def assignment(self, index: pd.Index) -> pd.Series:
        self._check_fitted()
        return self.result_.assignment(index, name=self.ASSIGNMENT_NAME)

    def centroids_frame(self, mean: Optional[np.ndarray] = None, scale: Optional[np.ndarray] = None) -> pd.DataFrame:
        """
        Centroids per cluster in standardized space, plus raw-scale columns
        (``<column>_raw``) when the standardizer's mean and scale are given.
        """
        self._check_fitted()
        centroids = self.result_.centroids
        frame = pd.DataFrame(centroids, columns=self.columns_)
        if mean is not None and scale is not None:
            raw = centroids * scale + mean
            for j, column in enumerate(self.columns_):
                frame[f"{column}_raw"] = raw[:, j]
        frame.insert(0, 'cluster_segment', np.arange(1, self.result_.n_clusters + 1))
        frame['size'] = np.bincount(self.result_.labels, minlength=self.result_.n_clusters + 1)[1:]
        frame['within_ss'] = self.result_.within_ss
        return frame
