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
ANN Engine Boundary

Datasets talk to a graph index only through :class:`AnnEngine`. Engines
return raw results in the faiss layout: ``ids`` and ``distances`` arrays of
shape ``(nq, k)``, with ``-1`` ids in slots the engine could not fill.

Engines may fail with whatever native exception type they like; callers
wrap every engine call in :func:`engine_boundary`, which turns those
failures into :class:`~oak.errors.EngineFault`.

Backends:
- :class:`ExactEngine` - in-process brute force (numpy), for small
  collections, tests and recall ground truth
- :class:`~oak.acorn.AcornEngine` - native ACORN graph index via FFI
"""

import logging
import threading
import warnings
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Tuple

import numpy as np

from .bitmask import Bitmask
from .config import IndexOptions
from .errors import EngineFault, OakError
from .fvecs import VectorBatch
from .metadata import HybridAttributeStore
from .predicate import PredicateQuery

logger = logging.getLogger(__name__)

RawSearchResult = Tuple[np.ndarray, np.ndarray]


class PerformanceWarning(UserWarning):
    """Warning for performance-degrading conditions."""
    pass


# =============================================================================
# Fault conversion
# =============================================================================

@contextmanager
def engine_boundary(operation: str) -> Iterator[None]:
    """Convert any foreign fault raised inside the block into ``EngineFault``.

    Errors from this package's own taxonomy pass through unchanged.
    """
    try:
        yield
    except OakError:
        raise
    except Exception as e:
        message = str(e) or type(e).__name__
        logger.warning("ANN engine fault during %s: %s", operation, message)
        raise EngineFault(
            message,
            details={"operation": operation, "native_type": type(e).__name__},
        ) from e


# =============================================================================
# Index handle
# =============================================================================

class IndexHandle:
    """
    Opaque, exclusively owned engine index.

    The resource is released exactly once, by :meth:`close`, by leaving a
    ``with`` block, or when the handle is garbage collected.
    """

    def __init__(
        self,
        resource: Any,
        release: Optional[Callable[[Any], None]] = None,
        *,
        count: int,
        dimensionality: int,
    ):
        self._resource = resource
        self._release = release
        self._lock = threading.Lock()
        self.count = count
        self.dimensionality = dimensionality

    @property
    def closed(self) -> bool:
        return self._resource is None

    @property
    def resource(self) -> Any:
        if self._resource is None:
            raise RuntimeError("index handle has been released")
        return self._resource

    def close(self) -> None:
        with self._lock:
            resource, self._resource = self._resource, None
        if resource is not None and self._release is not None:
            self._release(resource)

    def __enter__(self) -> "IndexHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self):
        if getattr(self, "_resource", None) is not None:
            try:
                self.close()
            except Exception:
                # Interpreter shutdown may have torn down the native library
                pass

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"IndexHandle({state}, count={self.count}, dim={self.dimensionality})"


# =============================================================================
# Engine interface
# =============================================================================

class AnnEngine(ABC):
    """
    Abstract interface for ANN engines.
    """

    name: str = "engine"

    @abstractmethod
    def build(
        self,
        vectors: VectorBatch,
        options: IndexOptions,
        attributes: HybridAttributeStore,
    ) -> IndexHandle:
        """Build a graph index over ``vectors``. Blocking."""
        pass

    @abstractmethod
    def search(
        self,
        handle: IndexHandle,
        queries: VectorBatch,
        mask: Bitmask,
        k: int,
    ) -> RawSearchResult:
        """Masked top-k search. Returns ``(ids, distances)`` of shape (nq, k)."""
        pass

    def evaluate_predicate(
        self,
        serialized: bytes,
        attributes: HybridAttributeStore,
    ) -> Bitmask:
        """Evaluate an encoded predicate into a mask over ``attributes``."""
        predicate = PredicateQuery.deserialize(serialized)
        return Bitmask(predicate.matches(attributes.as_array()))


# =============================================================================
# Exact (brute-force) engine
# =============================================================================

_EXACT_WARN_THRESHOLD = 1_000_000


class _ExactIndex:
    __slots__ = ("vectors", "sq_norms")

    def __init__(self, vectors: np.ndarray):
        self.vectors = vectors
        self.sq_norms = np.einsum("ij,ij->i", vectors, vectors, dtype=np.float64)


class ExactEngine(AnnEngine):
    """
    Brute-force engine using squared L2 distance (the ACORN/faiss default).

    Every query scans all admitted vectors, so results are exact. Ties in
    distance are broken by ascending vector id.
    """

    name = "exact"

    def __init__(self):
        self._warned = False

    def build(
        self,
        vectors: VectorBatch,
        options: IndexOptions,
        attributes: HybridAttributeStore,
    ) -> IndexHandle:
        if len(vectors) >= _EXACT_WARN_THRESHOLD and not self._warned:
            warnings.warn(
                f"ExactEngine scans all {len(vectors)} vectors per query; "
                "use the ACORN backend for large collections.",
                PerformanceWarning,
                stacklevel=3,
            )
            self._warned = True
        index = _ExactIndex(vectors.as_array())
        return IndexHandle(
            index,
            count=len(vectors),
            dimensionality=vectors.dimensionality,
        )

    def search(
        self,
        handle: IndexHandle,
        queries: VectorBatch,
        mask: Bitmask,
        k: int,
    ) -> RawSearchResult:
        index = handle.resource
        nq = len(queries)
        ids = np.full((nq, k), -1, dtype=np.int64)
        distances = np.full((nq, k), np.inf, dtype=np.float32)

        admitted = mask.indices()
        if admitted.size == 0 or nq == 0:
            return ids, distances

        candidates = index.vectors[admitted].astype(np.float64)
        q = queries.as_array().astype(np.float64)
        # ||q - x||^2 = ||q||^2 - 2 q.x + ||x||^2
        dist = (
            np.einsum("ij,ij->i", q, q)[:, None]
            - 2.0 * (q @ candidates.T)
            + index.sq_norms[admitted][None, :]
        )
        np.maximum(dist, 0.0, out=dist)

        take = min(k, admitted.size)
        for row in range(nq):
            # admitted is ascending, so lexsort on (id, distance) breaks ties by id
            order = np.lexsort((admitted, dist[row]))[:take]
            ids[row, :take] = admitted[order]
            distances[row, :take] = dist[row, order]
        return ids, distances
