"""
Recall helpers.
"""

import pytest

from oak import Bitmask, ValidationError, ground_truth, recall_at_k


def test_ground_truth_unfiltered():
    truth = ground_truth([[0.0], [1.0], [5.0]], [[0.9]], k=2)
    assert [vid for vid, _ in truth[0]] == [1, 0]


def test_ground_truth_masked():
    truth = ground_truth([[0.0], [1.0], [5.0]], [[0.9]], mask=Bitmask([1, 0, 1]), k=2)
    assert [vid for vid, _ in truth[0]] == [0, 2]


def test_recall_perfect_and_partial():
    truth = [[(0, 0.0), (1, 1.0)], [(2, 0.0), (3, 1.0)]]

    assert recall_at_k(truth, truth, k=2) == 1.0
    assert recall_at_k([[(0, 0.0), (9, 1.0)], [(3, 1.0), (2, 0.0)]], truth, k=2) == pytest.approx(0.75)


def test_recall_empty_truth_counts_as_recalled():
    assert recall_at_k([[]], [[]], k=5) == 1.0
    assert recall_at_k([], [], k=5) == 1.0


def test_recall_validates_inputs():
    with pytest.raises(ValidationError):
        recall_at_k([[]], [[], []], k=1)
    with pytest.raises(ValidationError):
        recall_at_k([[]], [[]], k=0)


def test_exact_dataset_has_full_recall(indexed, vectors, queries):
    mask = Bitmask(indexed.get_metadata().as_array() % 2 == 0)

    approx = indexed.search_with_bitmask(queries, mask, 10)
    truth = ground_truth(vectors, queries, mask=mask, k=10)

    assert recall_at_k(approx, truth, k=10) == 1.0
