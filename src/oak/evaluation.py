# Copyright 2025 Sushanth (https://github.com/sushanthpy)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Recall measurement for approximate results against exact ground truth.

Example:
    >>> truth = ground_truth(ds.vectors, queries, mask, k=10)
    >>> approx = ds.search_with_bitmask(queries, mask, topk=10)
    >>> recall_at_k(approx, truth, k=10)
    0.97
"""

from typing import Optional, Sequence, Union

import numpy as np

from .bitmask import Bitmask
from .config import OakSettings
from .dataset import HybridDataset, TopKSearchResultBatch
from .engine import ExactEngine
from .errors import ValidationError
from .fvecs import ArrayLike, VectorBatch


def ground_truth(
    vectors: Union[VectorBatch, ArrayLike],
    queries: Union[VectorBatch, ArrayLike],
    mask: Optional[Union[Bitmask, Sequence[int]]] = None,
    k: int = 10,
) -> TopKSearchResultBatch:
    """Exact masked top-k, computed by brute force."""
    if isinstance(queries, np.ndarray) and queries.size:
        queries = VectorBatch.from_vectors(queries)
    with HybridDataset(vectors, engine=ExactEngine(), settings=OakSettings()) as exact:
        exact.build_index()
        if mask is None:
            return exact.search(queries, None, k)
        return exact.search_with_bitmask(queries, mask, k)


def recall_at_k(
    results: TopKSearchResultBatch,
    truth: TopKSearchResultBatch,
    k: int = 10,
) -> float:
    """Mean fraction of the true top-k ids found in the returned top-k.

    Queries whose true result set is empty count as fully recalled.
    """
    if len(results) != len(truth):
        raise ValidationError(
            f"got {len(results)} result lists for {len(truth)} ground-truth lists"
        )
    if k <= 0:
        raise ValidationError(f"k must be positive, got {k}")
    if not truth:
        return 1.0

    total = 0.0
    for found, expected in zip(results, truth):
        expected_ids = {vid for vid, _ in expected[:k]}
        if not expected_ids:
            total += 1.0
            continue
        found_ids = {vid for vid, _ in found[:k]}
        total += len(found_ids & expected_ids) / len(expected_ids)
    return total / len(truth)
