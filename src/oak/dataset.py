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
OAK Datasets

A dataset owns a batch of vectors, one i32 attribute per vector and, once
``build_index`` has run, the engine's index handle.

Lifecycle::

    UNINDEXED --build_index(options)--> INDEXED

The transition is one-way; there is no in-place rebuild. Searching an
unindexed dataset raises :class:`~oak.errors.NotIndexedError`.

Example:
    with create_dataset(vectors, attrs, backend="exact") as ds:
        ds.build_index(IndexOptions(gamma=12))

        # Declarative filter
        hits = ds.search(queries, PredicateQuery.equals(5), topk=10)

        # Same thing with a precomputed mask
        mask = Bitmask.from_predicate(PredicateQuery.equals(5), ds.get_metadata())
        assert ds.search_with_bitmask(queries, mask, topk=10) == hits

Result ids always index the original, unfiltered collection.
"""

from __future__ import annotations

import logging
import math
import sys
import threading
import time
import warnings
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .bitmask import Bitmask
from .config import IndexOptions, OakSettings
from .engine import AnnEngine, ExactEngine, IndexHandle, PerformanceWarning, engine_boundary
from .errors import (
    AlreadyIndexedError,
    AttributeCountMismatchError,
    DimensionMismatchError,
    EmptyDatasetError,
    EngineFault,
    InvalidOptionError,
    NonFiniteVectorError,
    NotIndexedError,
    QueryDimensionMismatchError,
    ResourceError,
    ValidationError,
)
from .fvecs import ArrayLike, VectorBatch
from .metadata import HybridAttributeStore
from .predicate import PredicateQuery

logger = logging.getLogger(__name__)

# (filename, lineno) of callers already warned about query copies
_QUERY_COPY_WARNED = set()

# t[0] is the position of the similar vector in the dataset, t[1] its distance
# from the query.
SimilaritySearchResult = Tuple[int, float]

# Up to `topk` results for one query, ascending by distance.
TopKSearchResult = List[SimilaritySearchResult]

# One TopKSearchResult per query vector.
TopKSearchResultBatch = List[TopKSearchResult]


class DatasetState(str, Enum):
    """Index-build state of a dataset."""
    UNINDEXED = "unindexed"
    INDEXED = "indexed"


# ============================================================================
# Dataset interface
# ============================================================================

class Dataset(ABC):
    """
    Trait for a dataset of vectors.
    """

    @abstractmethod
    def __len__(self) -> int:
        """Number of vectors in the dataset."""
        pass

    @abstractmethod
    def get_dimensionality(self) -> int:
        """Dimensionality of the vectors in the dataset."""
        pass

    @abstractmethod
    def get_data(self) -> np.ndarray:
        """All vectors as an (N, D) float32 array.

        Raises:
            ResourceError: If the full dataset doesn't fit in memory.
        """
        pass

    @abstractmethod
    def get_metadata(self) -> HybridAttributeStore:
        """Attributes over the vectors, for hybrid search."""
        pass

    @property
    @abstractmethod
    def state(self) -> DatasetState:
        pass

    @abstractmethod
    def build_index(self, options: Optional[IndexOptions] = None) -> None:
        """Build the index for this dataset. Until it has run, every search
        method raises ``NotIndexedError``."""
        pass

    @abstractmethod
    def search(
        self,
        query_vectors: Union[VectorBatch, ArrayLike],
        predicate_query: Optional[PredicateQuery] = None,
        topk: int = 10,
    ) -> TopKSearchResultBatch:
        """Top-k search, optionally restricted by a predicate.

        Returns one list of ``(id, distance)`` tuples per query vector.
        """
        pass

    @abstractmethod
    def search_with_bitmask(
        self,
        query_vectors: Union[VectorBatch, ArrayLike],
        bitmask: Union[Bitmask, Sequence[int]],
        topk: int = 10,
    ) -> TopKSearchResultBatch:
        """Like :meth:`search`, with a precomputed mask instead of a predicate."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the index handle, if any."""
        pass

    @property
    def is_indexed(self) -> bool:
        return self.state is DatasetState.INDEXED

    def __enter__(self) -> "Dataset":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


# ============================================================================
# Engine-backed dataset
# ============================================================================

class HybridDataset(Dataset):
    """
    Dataset backed by an :class:`~oak.engine.AnnEngine`.

    Concurrency: one writer, many readers. ``build_index`` and ``close`` are
    serialized by a lock; searches only snapshot the index handle and may
    run in parallel once the dataset is indexed.

    Args:
        vectors: A VectorBatch, a 2D array / sequence of vectors, or a flat
            sequence together with ``dimensionality``
        attributes: One i32 per vector (store or sequence); defaults to
            all zeros
        dimensionality: Expected vector dimension
        engine: ANN engine; defaults to :class:`~oak.engine.ExactEngine`
        settings: Runtime settings; defaults to ``OakSettings.from_env()``
    """

    def __init__(
        self,
        vectors: Union[VectorBatch, ArrayLike],
        attributes: Union[HybridAttributeStore, Sequence[int], np.ndarray, None] = None,
        *,
        dimensionality: Optional[int] = None,
        engine: Optional[AnnEngine] = None,
        settings: Optional[OakSettings] = None,
    ):
        self._vectors = _coerce_batch(vectors, dimensionality)
        if dimensionality is not None and self._vectors.dimensionality != dimensionality:
            raise DimensionMismatchError(dimensionality, self._vectors.dimensionality)

        if attributes is None:
            attributes = np.zeros(len(self._vectors), dtype=np.int32)
        if not isinstance(attributes, HybridAttributeStore):
            attributes = HybridAttributeStore(attributes)
        if len(attributes) != len(self._vectors):
            raise AttributeCountMismatchError(len(self._vectors), len(attributes))
        self._metadata = attributes

        self._engine = engine if engine is not None else ExactEngine()
        self._settings = settings if settings is not None else OakSettings.from_env()
        self._lock = threading.RLock()
        self._state = DatasetState.UNINDEXED
        self._handle: Optional[IndexHandle] = None
        self._options: Optional[IndexOptions] = None
        self._closed = False

    # -- accessors -------------------------------------------------------- #

    def __len__(self) -> int:
        return len(self._vectors)

    def get_dimensionality(self) -> int:
        return self._vectors.dimensionality

    def get_data(self) -> np.ndarray:
        budget = self._settings.max_materialize_bytes
        needed = self._vectors.nbytes
        if budget is not None and needed > budget:
            raise ResourceError(
                f"Dataset needs {needed} bytes, over the {budget} byte materialization budget",
                details={"needed": needed, "budget": budget},
            )
        try:
            return np.array(self._vectors.as_array(), dtype=np.float32, copy=True)
        except MemoryError as e:
            raise ResourceError(f"Dataset of {needed} bytes does not fit in memory") from e

    def get_metadata(self) -> HybridAttributeStore:
        return self._metadata

    @property
    def vectors(self) -> VectorBatch:
        return self._vectors

    @property
    def state(self) -> DatasetState:
        return self._state

    @property
    def options(self) -> Optional[IndexOptions]:
        """Options the index was built with, once indexed."""
        return self._options

    @property
    def engine(self) -> AnnEngine:
        return self._engine

    # -- construction ----------------------------------------------------- #

    def build_index(self, options: Union[IndexOptions, Mapping[str, Any], None] = None) -> None:
        """Build the engine index. Blocking; one-way.

        Raises:
            AlreadyIndexedError: The dataset already has an index.
            EmptyDatasetError: There are no vectors.
            NonFiniteVectorError: A vector holds NaN or infinity.
            EngineFault: The engine failed to build the index.
        """
        options = _coerce_options(options)

        with self._lock:
            if self._closed:
                raise ValidationError("Dataset has been closed")
            if self._state is DatasetState.INDEXED:
                raise AlreadyIndexedError()
            self._validate_for_build()

            logger.debug(
                "building %s index: n=%d d=%d options=%s",
                self._engine.name, len(self), self.get_dimensionality(), options.to_dict(),
            )
            start = time.perf_counter()

            handle = None
            try:
                with engine_boundary("build"):
                    handle = self._engine.build(self._vectors, options, self._metadata)
                if not isinstance(handle, IndexHandle):
                    raise EngineFault(
                        f"engine returned {type(handle).__name__} instead of an index handle"
                    )
                if handle.count != len(self) or handle.dimensionality != self.get_dimensionality():
                    raise EngineFault(
                        f"engine built an index of {handle.count}x{handle.dimensionality}, "
                        f"expected {len(self)}x{self.get_dimensionality()}"
                    )
            except BaseException:
                if isinstance(handle, IndexHandle):
                    handle.close()
                raise

            self._handle = handle
            self._options = options
            self._state = DatasetState.INDEXED

        logger.debug("built %s index in %.1f ms", self._engine.name, (time.perf_counter() - start) * 1000)

    def _validate_for_build(self) -> None:
        if len(self._vectors) == 0:
            raise EmptyDatasetError()
        bad_row = self._vectors.first_non_finite_row()
        if bad_row >= 0:
            raise NonFiniteVectorError(bad_row)
        if len(self._metadata) != len(self._vectors):
            raise AttributeCountMismatchError(len(self._vectors), len(self._metadata))

    # -- search ----------------------------------------------------------- #

    def search(
        self,
        query_vectors: Union[VectorBatch, ArrayLike],
        predicate_query: Optional[PredicateQuery] = None,
        topk: int = 10,
    ) -> TopKSearchResultBatch:
        """
        Raises:
            NotIndexedError: ``build_index`` has not run.
            SerializationError: The predicate cannot be encoded; the engine
                is not called.
            ValidationError: Malformed queries or ``topk``.
            EngineFault: The engine failed.
        """
        handle = self._require_index()
        queries = self._coerce_queries(query_vectors)
        _check_topk(topk)

        if predicate_query is None:
            mask = Bitmask.all(len(self))
        else:
            serialized = predicate_query.serialize()
            with engine_boundary("evaluate_predicate"):
                mask = self._engine.evaluate_predicate(serialized, self._metadata)
            if not isinstance(mask, Bitmask) or len(mask) != len(self):
                raise EngineFault(
                    f"predicate evaluation returned a mask misaligned with {len(self)} vectors"
                )

        return self._search_masked(handle, queries, mask, topk)

    def search_with_bitmask(
        self,
        query_vectors: Union[VectorBatch, ArrayLike],
        bitmask: Union[Bitmask, Sequence[int]],
        topk: int = 10,
    ) -> TopKSearchResultBatch:
        """
        Raises:
            NotIndexedError: ``build_index`` has not run.
            MaskLengthError: ``len(bitmask) != len(self)``.
            ValidationError: Malformed queries or ``topk``.
            EngineFault: The engine failed.
        """
        handle = self._require_index()
        queries = self._coerce_queries(query_vectors)
        _check_topk(topk)

        if not isinstance(bitmask, Bitmask):
            bitmask = Bitmask(bitmask)
        bitmask.ensure_length(len(self))

        return self._search_masked(handle, queries, bitmask, topk)

    def _require_index(self) -> IndexHandle:
        with self._lock:
            handle = self._handle
            if self._closed or (handle is not None and handle.closed):
                raise NotIndexedError("Dataset has been closed; its index is released")
            if self._state is not DatasetState.INDEXED or handle is None:
                raise NotIndexedError()
            return handle

    def _coerce_queries(self, query_vectors: Union[VectorBatch, ArrayLike]) -> VectorBatch:
        expected = self.get_dimensionality()
        if isinstance(query_vectors, VectorBatch):
            queries = query_vectors
        else:
            if isinstance(query_vectors, np.ndarray) and not (
                query_vectors.dtype == np.float32 and query_vectors.flags.c_contiguous
            ):
                _warn_query_copy(query_vectors)
            arr = _as_float_array(query_vectors)
            if arr.size == 0:
                return VectorBatch(np.empty(0, dtype=np.float32), expected)
            queries = VectorBatch.from_vectors(arr)
        if queries.dimensionality != expected:
            raise QueryDimensionMismatchError(expected, queries.dimensionality)
        if not queries.is_finite():
            raise ValidationError("query vectors contain NaN or infinite values")
        return queries

    def _search_masked(
        self,
        handle: IndexHandle,
        queries: VectorBatch,
        mask: Bitmask,
        topk: int,
    ) -> TopKSearchResultBatch:
        if len(queries) == 0:
            return []

        with engine_boundary("search"):
            ids, distances = self._engine.search(handle, queries, mask, topk)
            ids = np.asarray(ids)
            distances = np.asarray(distances)

        if ids.ndim != 2 or ids.shape != distances.shape or ids.shape[0] != len(queries):
            raise EngineFault(
                f"engine returned results of shape {ids.shape}/{distances.shape} "
                f"for {len(queries)} queries"
            )
        if not np.issubdtype(ids.dtype, np.integer) or not np.issubdtype(distances.dtype, np.floating):
            raise EngineFault(
                f"engine returned ids of dtype {ids.dtype} and distances of dtype "
                f"{distances.dtype}; expected integer ids and floating distances"
            )
        return [
            _normalize_row(row_ids, row_dist, mask, topk)
            for row_ids, row_dist in zip(ids, distances)
        ]

    # -- lifecycle -------------------------------------------------------- #

    def close(self) -> None:
        with self._lock:
            handle, self._handle = self._handle, None
            self._closed = True
        if handle is not None:
            handle.close()

    def __del__(self):
        handle = getattr(self, "_handle", None)
        if handle is not None:
            try:
                handle.close()
            except Exception:
                pass

    def __repr__(self) -> str:
        return (
            f"HybridDataset(n={len(self)}, dim={self.get_dimensionality()}, "
            f"engine={self._engine.name}, state={self._state.value})"
        )


# ============================================================================
# Helpers
# ============================================================================

def _as_float_array(data: ArrayLike) -> np.ndarray:
    try:
        return np.asarray(data, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"vectors must be numeric and of equal length: {e}") from e


def _warn_query_copy(arr: np.ndarray) -> None:
    # Frames: 0 here, 1 _coerce_queries, 2 search method, 3 caller
    caller = sys._getframe(3)
    site = (caller.f_code.co_filename, caller.f_lineno)
    if site in _QUERY_COPY_WARNED:
        return
    _QUERY_COPY_WARNED.add(site)
    layout = "C-contiguous" if arr.flags.c_contiguous else "non-contiguous"
    warnings.warn(
        f"query batch is {layout} {arr.dtype}; it is copied to contiguous float32 "
        "on every search. Pass a contiguous float32 array or a VectorBatch.",
        PerformanceWarning,
        stacklevel=4,
    )


def _coerce_batch(vectors: Union[VectorBatch, ArrayLike], dimensionality: Optional[int]) -> VectorBatch:
    if isinstance(vectors, VectorBatch):
        return vectors
    arr = _as_float_array(vectors)
    if arr.ndim == 1 and dimensionality is not None:
        return VectorBatch(arr, dimensionality)
    if arr.ndim == 2 and dimensionality is not None and arr.size and arr.shape[1] != dimensionality:
        raise DimensionMismatchError(dimensionality, arr.shape[1])
    return VectorBatch.from_vectors(arr, dimensionality)


def _coerce_options(options: Union[IndexOptions, Mapping[str, Any], None]) -> IndexOptions:
    if options is None:
        return IndexOptions()
    if isinstance(options, IndexOptions):
        return options
    if isinstance(options, Mapping):
        return IndexOptions.from_dict(options)
    raise InvalidOptionError(f"options must be IndexOptions or a mapping, got {type(options).__name__}")


def _check_topk(topk: int) -> None:
    if isinstance(topk, bool) or not isinstance(topk, (int, np.integer)) or topk <= 0:
        raise ValidationError(f"topk must be a positive integer, got {topk!r}")


def _normalize_row(
    ids: np.ndarray,
    distances: np.ndarray,
    mask: Bitmask,
    topk: int,
) -> TopKSearchResult:
    """Drop padding and masked-out ids, order by (distance, id), cut to topk."""
    admitted = mask.as_array()
    n = len(admitted)
    hits = []
    seen = set()
    for vid, dist in zip(ids.tolist(), distances.tolist()):
        if vid < 0 or vid >= n or not admitted[vid] or vid in seen:
            continue
        if math.isnan(dist):
            continue
        seen.add(vid)
        hits.append((int(vid), float(dist)))
    hits.sort(key=lambda hit: (hit[1], hit[0]))
    return hits[:topk]


# ============================================================================
# Factory Function
# ============================================================================

def create_dataset(
    vectors: Union[VectorBatch, ArrayLike],
    attributes: Union[HybridAttributeStore, Sequence[int], np.ndarray, None] = None,
    *,
    dimensionality: Optional[int] = None,
    backend: Union[str, AnnEngine, None] = None,
    settings: Optional[OakSettings] = None,
) -> HybridDataset:
    """
    Create a dataset on the requested backend.

    Args:
        vectors: Vectors (see :class:`HybridDataset`)
        attributes: One i32 per vector
        dimensionality: Vector dimension; required for flat input
        backend: ``"acorn"``, ``"exact"``, an AnnEngine, or None for
            ``settings.default_backend``
        settings: Runtime settings; defaults to ``OakSettings.from_env()``

    Returns:
        An unindexed HybridDataset
    """
    settings = settings if settings is not None else OakSettings.from_env()
    if backend is None:
        backend = settings.default_backend

    if isinstance(backend, AnnEngine):
        engine = backend
    elif backend == "exact":
        engine = ExactEngine()
    elif backend == "acorn":
        from .acorn import AcornEngine
        engine = AcornEngine(lib_path=settings.lib_path)
    else:
        raise InvalidOptionError(f"Unknown backend: {backend!r}")

    return HybridDataset(
        vectors,
        attributes,
        dimensionality=dimensionality,
        engine=engine,
        settings=settings,
    )
