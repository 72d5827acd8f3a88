"""
DTW Time-Series Clustering
===========================
Partitions assets into k groups by the shape of their reduced feature
trajectories.

Components:
  dtw_distance        — elastic alignment distance between two 2D sequences
  dtw_distance_matrix — all pairwise distances (optionally on a process pool)
  cluster_series      — PAM (k-medoids) partitioning over the DTW matrix
  verify_assignment   — one-cluster-per-symbol consistency check
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.spatial.distance import cdist

import config
from models.entities import ClusterAssignment
from models.errors import ConfigurationError, ConsistencyError
from utils.helpers import parallel_map

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════
#  Dynamic Time Warping
# ══════════════════════════════════════════════════════════

def _as_points(seq) -> np.ndarray:
    arr = np.asarray(seq, dtype=float)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    return arr


def dtw_distance(a, b) -> float:
    """
    DTW distance between sequences of points (n, dims) and (m, dims).

    Minimum over monotonic, contiguous warping paths from the first pair to
    the last of the summed Euclidean point distances:

        cost(i, j) = d(a_i, b_j) + min(cost(i-1, j), cost(i, j-1), cost(i-1, j-1))

    Cells on one anti-diagonal only depend on the two previous diagonals,
    so each diagonal is filled in a single vectorized step.
    """
    a = _as_points(a)
    b = _as_points(b)
    if len(a) == 0 or len(b) == 0:
        raise ValueError("DTW needs two non-empty sequences")

    local = cdist(a, b, metric="euclidean")
    n, m = local.shape

    cost = np.full((n + 1, m + 1), np.inf)
    cost[0, 0] = 0.0

    for diag in range(2, n + m + 1):
        i = np.arange(max(1, diag - m), min(n, diag - 1) + 1)
        j = diag - i
        best = np.minimum(np.minimum(cost[i - 1, j], cost[i, j - 1]), cost[i - 1, j - 1])
        cost[i, j] = local[i - 1, j - 1] + best

    return float(cost[n, m])


def _pair_distance(pair) -> float:
    a, b = pair
    return dtw_distance(a, b)


def dtw_distance_matrix(sequences: list, n_jobs: int = None) -> np.ndarray:
    """Symmetric matrix of pairwise DTW distances with a zero diagonal."""
    n_jobs = n_jobs or config.N_JOBS
    n = len(sequences)
    matrix = np.zeros((n, n))

    pairs = [(i, j) for i in range(n) for j in range(i + 1, n)]
    distances = parallel_map(
        _pair_distance,
        [(sequences[i], sequences[j]) for i, j in pairs],
        n_jobs=n_jobs,
    )
    for (i, j), dist in zip(pairs, distances):
        matrix[i, j] = matrix[j, i] = dist

    logger.info(f"Computed {len(pairs)} pairwise DTW distances for {n} series")
    return matrix


# ══════════════════════════════════════════════════════════
#  Partitioning Around Medoids
# ══════════════════════════════════════════════════════════

def cluster_series(
    series: dict[str, np.ndarray],
    k: int = None,
    seed: int = None,
    max_iter: int = None,
    n_jobs: int = None,
    distances: np.ndarray = None,
) -> ClusterAssignment:
    """
    Partition asset series into k clusters with DTW-based k-medoids.

    Args:
        series: symbol → (n_i, 2) array ordered by date; lengths may differ.
        k: number of clusters.
        seed: seed for the initial medoid draw.
        max_iter: assignment/update rounds before giving up on convergence.
        n_jobs: processes for the distance matrix.
        distances: precomputed DTW matrix in sorted-symbol order.

    Returns:
        ClusterAssignment with cluster ids 1..k, numbered in initial-draw order.
    """
    k = k if k is not None else config.N_CLUSTERS
    seed = seed if seed is not None else config.CLUSTER_SEED
    max_iter = max_iter or config.CLUSTER_MAX_ITER

    symbols = sorted(series)
    n = len(symbols)

    if k < 1:
        raise ConfigurationError(f"Number of clusters must be at least 1, got {k}")
    if n < k:
        raise ConfigurationError(
            f"Cannot form {k} clusters from {n} symbols with valid series"
        )

    if distances is None:
        distances = dtw_distance_matrix([series[s] for s in symbols], n_jobs=n_jobs)
    elif distances.shape != (n, n):
        raise ValueError(f"Distance matrix shape {distances.shape} does not match {n} series")

    rng = np.random.default_rng(seed)
    medoids = [int(i) for i in rng.choice(n, size=k, replace=False)]

    labels = None
    converged = False
    iterations = 0

    for iterations in range(1, max_iter + 1):
        # Assignment: nearest medoid, ties → lowest cluster index
        new_labels = np.argmin(distances[:, medoids], axis=1)
        # A medoid always stays in its own cluster (guards against duplicate series)
        new_labels[medoids] = np.arange(k)

        if labels is not None and np.array_equal(new_labels, labels):
            converged = True
            break
        labels = new_labels

        # Update: member with the smallest summed distance to its cluster
        for c in range(k):
            members = np.flatnonzero(labels == c)
            within = distances[np.ix_(members, members)].sum(axis=1)
            medoids[c] = int(members[np.argmin(within)])

    if not converged:
        logger.warning(f"PAM did not converge within {max_iter} iterations")

    total_cost = float(sum(distances[i, medoids[labels[i]]] for i in range(n)))

    assignment = ClusterAssignment(
        labels={symbols[i]: int(labels[i]) + 1 for i in range(n)},
        k=k,
        medoids={c + 1: symbols[m] for c, m in enumerate(medoids)},
        iterations=iterations,
        converged=converged,
        total_cost=total_cost,
    )

    sizes = ", ".join(f"{c}: {size}" for c, size in assignment.sizes().items())
    logger.info(
        f"DTW clustering: k={k}, {iterations} iterations, "
        f"cost={total_cost:.2f}, sizes [{sizes}]"
    )
    return assignment


def verify_assignment(symbols, assignment: ClusterAssignment) -> None:
    """Every input symbol must map to exactly one existing, non-empty cluster."""
    symbols = list(symbols)
    expected = set(symbols)
    labelled = set(assignment.labels)

    missing = expected - labelled
    unknown = labelled - expected
    if missing or unknown or len(symbols) != len(expected):
        raise ConsistencyError(
            f"Symbols and clusters do not match: {len(missing)} unassigned, "
            f"{len(unknown)} unknown, {len(symbols)} input symbols"
        )

    bad_ids = {c for c in assignment.labels.values() if c not in assignment.cluster_ids}
    if bad_ids:
        raise ConsistencyError(f"Cluster ids outside 1..{assignment.k}: {sorted(bad_ids)}")

    if len(expected) >= assignment.k:
        empty = [c for c, size in assignment.sizes().items() if size == 0]
        if empty:
            raise ConsistencyError(f"Clusters left empty after assignment: {empty}")
