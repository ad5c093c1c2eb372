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
OAK - Hybrid Vector Search

Top-k approximate nearest-neighbor search over float32 vectors, restricted
by a predicate on one i32 attribute per vector:

1. **Datasets** - vectors + attributes, with an unindexed -> indexed lifecycle
2. **Filters** - declarative ``PredicateQuery`` or precomputed ``Bitmask``
3. **Engines** - native ACORN graph index (FFI) or exact in-process search
"""

import logging

from .bitmask import Bitmask
from .config import IndexOptions, OakSettings
from .dataset import (
    Dataset,
    DatasetState,
    HybridDataset,
    SimilaritySearchResult,
    TopKSearchResult,
    TopKSearchResultBatch,
    create_dataset,
)
from .engine import AnnEngine, ExactEngine, IndexHandle, PerformanceWarning, engine_boundary
from .errors import (
    AlreadyIndexedError,
    AttributeCountMismatchError,
    ConstructionError,
    DimensionMismatchError,
    EmptyDatasetError,
    EngineFault,
    ErrorCode,
    InvalidOptionError,
    MaskLengthError,
    NonFiniteVectorError,
    NotIndexedError,
    OakError,
    QueryDimensionMismatchError,
    ResourceError,
    SerializationError,
    ValidationError,
)
from .evaluation import ground_truth, recall_at_k
from .fvecs import Fvec, VectorBatch, read_fvecs, read_ivecs, write_fvecs
from .metadata import HybridAttributeStore
from .predicate import PredicateOp, PredicateQuery

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Data model
    "VectorBatch",
    "Fvec",
    "Bitmask",
    "PredicateQuery",
    "PredicateOp",
    "HybridAttributeStore",
    "IndexOptions",
    "OakSettings",
    # Datasets
    "Dataset",
    "DatasetState",
    "HybridDataset",
    "SimilaritySearchResult",
    "TopKSearchResult",
    "TopKSearchResultBatch",
    "create_dataset",
    # Engines
    "AnnEngine",
    "ExactEngine",
    "IndexHandle",
    "PerformanceWarning",
    "engine_boundary",
    # Evaluation
    "ground_truth",
    "recall_at_k",
    "read_fvecs",
    "read_ivecs",
    "write_fvecs",
    # Errors
    "OakError",
    "ErrorCode",
    "NotIndexedError",
    "SerializationError",
    "EngineFault",
    "ConstructionError",
    "EmptyDatasetError",
    "DimensionMismatchError",
    "AttributeCountMismatchError",
    "NonFiniteVectorError",
    "AlreadyIndexedError",
    "ValidationError",
    "MaskLengthError",
    "QueryDimensionMismatchError",
    "InvalidOptionError",
    "ResourceError",
]
