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
OAK Error Types

All errors raised by this package derive from :class:`OakError`. Faults
raised by an ANN engine are never exposed in their native type; they are
converted to :class:`EngineFault` at the engine boundary.

Hierarchy::

    OakError
    ├── NotIndexedError
    ├── SerializationError
    ├── EngineFault
    ├── ConstructionError
    │   ├── EmptyDatasetError
    │   ├── DimensionMismatchError
    │   ├── AttributeCountMismatchError
    │   ├── NonFiniteVectorError
    │   └── AlreadyIndexedError
    ├── ValidationError
    │   ├── MaskLengthError
    │   ├── QueryDimensionMismatchError
    │   └── InvalidOptionError
    └── ResourceError
"""

from enum import IntEnum
from typing import Any, Dict, Optional


class ErrorCode(IntEnum):
    """Stable numeric codes for programmatic error handling."""

    INTERNAL_ERROR = 1

    # Search state
    NOT_INDEXED = 1000

    # Predicate encoding
    SERIALIZATION_ERROR = 2000

    # Engine boundary
    ENGINE_FAULT = 3000

    # Index construction
    CONSTRUCTION_ERROR = 4000
    EMPTY_DATASET = 4001
    DIMENSION_MISMATCH = 4002
    ATTRIBUTE_COUNT_MISMATCH = 4003
    NON_FINITE_VECTOR = 4004
    ALREADY_INDEXED = 4005

    # Local contract violations
    VALIDATION_ERROR = 5000
    MASK_LENGTH_MISMATCH = 5001
    QUERY_DIMENSION_MISMATCH = 5002
    INVALID_OPTION = 5003

    # Memory / materialization
    RESOURCE_ERROR = 6000


class OakError(Exception):
    """Base class for all OAK errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": int(self.code),
            "name": self.code.name,
            "message": self.message,
            "details": self.details,
        }


# ============================================================================
# Search
# ============================================================================

class NotIndexedError(OakError):
    """Search was attempted before ``build_index`` completed."""

    code = ErrorCode.NOT_INDEXED

    def __init__(self, message: str = "You must index a dataset before it can be searched"):
        super().__init__(message)


class SerializationError(OakError):
    """A predicate could not be encoded (or decoded) for the engine."""

    code = ErrorCode.SERIALIZATION_ERROR


class EngineFault(OakError):
    """Any fault surfaced across the ANN engine boundary."""

    code = ErrorCode.ENGINE_FAULT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        if not message:
            message = "unknown engine fault"
        super().__init__(message, details=details)


# ============================================================================
# Construction
# ============================================================================

class ConstructionError(OakError):
    """Base class for ``build_index`` validation failures."""

    code = ErrorCode.CONSTRUCTION_ERROR


class EmptyDatasetError(ConstructionError):
    code = ErrorCode.EMPTY_DATASET

    def __init__(self, message: str = "Cannot build an index over an empty dataset"):
        super().__init__(message)


class DimensionMismatchError(ConstructionError):
    """Vectors handed to a dataset disagree with its declared dimensionality."""

    code = ErrorCode.DIMENSION_MISMATCH

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class AttributeCountMismatchError(ConstructionError):
    code = ErrorCode.ATTRIBUTE_COUNT_MISMATCH

    def __init__(self, vectors: int, attributes: int):
        super().__init__(
            f"Number of attributes ({attributes}) must match number of vectors ({vectors})",
            details={"vectors": vectors, "attributes": attributes},
        )


class NonFiniteVectorError(ConstructionError):
    code = ErrorCode.NON_FINITE_VECTOR

    def __init__(self, row: int):
        super().__init__(
            f"Vector at position {row} contains NaN or infinite values",
            details={"row": row},
        )
        self.row = row


class AlreadyIndexedError(ConstructionError):
    code = ErrorCode.ALREADY_INDEXED

    def __init__(self, message: str = "Dataset is already indexed; rebuilding in place is not supported"):
        super().__init__(message)


# ============================================================================
# Validation
# ============================================================================

class ValidationError(OakError, ValueError):
    """A local contract violation detected before reaching the engine."""

    code = ErrorCode.VALIDATION_ERROR


class MaskLengthError(ValidationError):
    code = ErrorCode.MASK_LENGTH_MISMATCH

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Bitmask length {actual} does not match collection size {expected}",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class QueryDimensionMismatchError(ValidationError):
    code = ErrorCode.QUERY_DIMENSION_MISMATCH

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Query dimension mismatch: expected {expected}, got {actual}",
            details={"expected": expected, "actual": actual},
        )


class InvalidOptionError(ValidationError):
    code = ErrorCode.INVALID_OPTION


# ============================================================================
# Resources
# ============================================================================

class ResourceError(OakError, MemoryError):
    """The requested data cannot be materialized in memory."""

    code = ErrorCode.RESOURCE_ERROR
