"""Tests for DTW distances and medoid clustering."""

import numpy as np
import pytest

from ml.clustering import cluster_series, dtw_distance, dtw_distance_matrix, verify_assignment
from models.entities import ClusterAssignment
from models.errors import ConfigurationError, ConsistencyError


def _line(level: float, n: int = 20) -> np.ndarray:
    return np.column_stack([np.full(n, level), np.linspace(0, 1, n)])


@pytest.fixture
def grouped_series():
    """Three tight groups of two series each, at levels 0, 10 and 20."""
    rng = np.random.default_rng(0)
    series = {}
    for name, level in [("A", 0.0), ("B", 10.0), ("C", 20.0)]:
        for i in range(2):
            series[f"{name}{i}"] = _line(level, 20 + 3 * i) + rng.normal(0, 0.05, (20 + 3 * i, 2))
    return series


def test_dtw_identical_is_zero():
    a = _line(1.0)
    assert dtw_distance(a, a) == 0.0


def test_dtw_symmetric_and_positive():
    rng = np.random.default_rng(5)
    a = rng.normal(size=(15, 2))
    b = rng.normal(size=(22, 2))
    assert dtw_distance(a, b) == pytest.approx(dtw_distance(b, a))
    assert dtw_distance(a, b) > 0


def test_dtw_known_value():
    a = np.array([[0.0], [1.0], [2.0]])
    b = np.array([[0.0], [2.0]])
    # best path: (0,0) (1,0)|(1,1) (2,1) → 0 + 1 + 0
    assert dtw_distance(a, b) == pytest.approx(1.0)


def test_dtw_handles_warping():
    a = np.array([[0.0], [0.0], [1.0], [1.0]])
    b = np.array([[0.0], [1.0]])
    assert dtw_distance(a, b) == 0.0


def test_dtw_empty_raises():
    with pytest.raises(ValueError):
        dtw_distance(np.empty((0, 2)), _line(0.0))


def test_distance_matrix_symmetric(grouped_series):
    seqs = [grouped_series[s] for s in sorted(grouped_series)]
    matrix = dtw_distance_matrix(seqs)
    assert matrix.shape == (6, 6)
    np.testing.assert_allclose(matrix, matrix.T)
    np.testing.assert_allclose(np.diag(matrix), 0.0)


def test_cluster_series_recovers_groups(grouped_series):
    # Random medoid draws can start two medoids in one group; the lowest-cost
    # run over several seeds is the grouped partition.
    runs = [cluster_series(grouped_series, k=3, seed=seed) for seed in range(20)]
    assignment = min(runs, key=lambda a: a.total_cost)

    assert sorted(assignment.labels) == sorted(grouped_series)
    assert set(assignment.labels.values()) == {1, 2, 3}
    for name in "ABC":
        assert assignment.labels[f"{name}0"] == assignment.labels[f"{name}1"]
    assert assignment.converged
    verify_assignment(sorted(grouped_series), assignment)


def test_every_run_is_consistent(grouped_series):
    for seed in range(5):
        assignment = cluster_series(grouped_series, k=3, seed=seed)
        verify_assignment(sorted(grouped_series), assignment)
        assert all(size > 0 for size in assignment.sizes().values())


def test_cluster_series_is_reproducible(grouped_series):
    first = cluster_series(grouped_series, k=3, seed=7)
    second = cluster_series(grouped_series, k=3, seed=7)
    assert first.labels == second.labels
    assert first.medoids == second.medoids


def test_cluster_series_k_too_large(grouped_series):
    with pytest.raises(ConfigurationError):
        cluster_series(grouped_series, k=7)


def test_cluster_series_invalid_k(grouped_series):
    with pytest.raises(ConfigurationError):
        cluster_series(grouped_series, k=0)


def test_duplicate_series_keep_clusters_non_empty():
    same = _line(0.0)
    series = {"X": same, "Y": same.copy(), "Z": same.copy()}
    assignment = cluster_series(series, k=3, seed=1)
    assert sorted(assignment.sizes().values()) == [1, 1, 1]


def test_verify_assignment_detects_missing_symbol():
    assignment = ClusterAssignment(labels={"A": 1, "B": 2}, k=2)
    with pytest.raises(ConsistencyError):
        verify_assignment(["A", "B", "C"], assignment)


def test_verify_assignment_detects_empty_cluster():
    assignment = ClusterAssignment(labels={"A": 1, "B": 1, "C": 2}, k=3)
    with pytest.raises(ConsistencyError):
        verify_assignment(["A", "B", "C"], assignment)


def test_verify_assignment_detects_bad_ids():
    assignment = ClusterAssignment(labels={"A": 1, "B": 4}, k=2)
    with pytest.raises(ConsistencyError):
        verify_assignment(["A", "B"], assignment)
