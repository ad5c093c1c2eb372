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
Flattened float32 vector batches.

A :class:`VectorBatch` holds N vectors of dimensionality D in one
contiguous, row-major float32 buffer of length N*D. Batches are immutable:
appending means building a new batch.

:func:`read_fvecs` and :func:`read_ivecs` load the TEXMEX file format the
SIFT benchmark sets ship in.
"""

import os
from typing import Iterator, Sequence, Union

import numpy as np

from .errors import ValidationError

# A single vector, as handed back to callers.
Fvec = np.ndarray

ArrayLike = Union[np.ndarray, Sequence[float], Sequence[Sequence[float]]]


class VectorBatch:
    """
    Contiguous, dimensionality-tagged batch of float32 vectors.

    Example:
        >>> batch = VectorBatch([1.0, 2.0, 3.0, 4.0], dimensionality=2)
        >>> len(batch), batch.dimensionality
        (2, 2)
        >>> batch[1]
        array([3., 4.], dtype=float32)
    """

    __slots__ = ("_data", "_dim")

    def __init__(self, flat: ArrayLike, dimensionality: int):
        """
        Args:
            flat: Flat sequence of N*D floats.
            dimensionality: Vector dimension D (must be > 0).

        Raises:
            ValidationError: If D <= 0, the input is not one-dimensional,
                or its length is not a multiple of D.
        """
        if isinstance(dimensionality, bool) or not isinstance(dimensionality, (int, np.integer)):
            raise ValidationError(f"dimensionality must be an integer, got {dimensionality!r}")
        if dimensionality <= 0:
            raise ValidationError(f"dimensionality must be positive, got {dimensionality}")

        try:
            arr = np.asarray(flat, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"vector data is not numeric: {e}") from e
        if arr.ndim != 1:
            raise ValidationError(f"flat vector data must be 1D, got {arr.ndim}D")
        if arr.size % dimensionality != 0:
            raise ValidationError(
                f"flat length {arr.size} is not a multiple of dimensionality {dimensionality}"
            )

        # Own a private copy so callers cannot mutate the batch through their array
        data = np.array(arr.reshape(-1, dimensionality), dtype=np.float32, order="C", copy=True)
        data.setflags(write=False)
        self._data = data
        self._dim = int(dimensionality)

    @classmethod
    def from_vectors(cls, vectors: ArrayLike, dimensionality: int = None) -> "VectorBatch":
        """Build a batch from a 2D array or a sequence of equal-length vectors.

        An empty input needs an explicit ``dimensionality``.
        """
        if isinstance(vectors, VectorBatch):
            return vectors
        try:
            arr = np.asarray(vectors, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"vectors must have equal length: {e}") from e

        if arr.size == 0:
            if dimensionality is None:
                if arr.ndim == 2 and arr.shape[1] > 0:
                    dimensionality = arr.shape[1]
                else:
                    raise ValidationError("dimensionality is required for an empty batch")
            return cls(np.empty(0, dtype=np.float32), dimensionality)

        if arr.ndim == 1:
            # A single vector
            arr = arr.reshape(1, -1)
        if arr.ndim != 2:
            raise ValidationError(f"vectors must be 2D, got shape {arr.shape}")
        if dimensionality is not None and arr.shape[1] != dimensionality:
            raise ValidationError(
                f"Vector dimension mismatch: expected {dimensionality}, got {arr.shape[1]}"
            )
        return cls(arr.reshape(-1), arr.shape[1])

    # -- accessors -------------------------------------------------------- #

    @property
    def dimensionality(self) -> int:
        return self._dim

    @property
    def count(self) -> int:
        return self._data.shape[0]

    def __len__(self) -> int:
        return self._data.shape[0]

    def __getitem__(self, idx: int) -> Fvec:
        if isinstance(idx, slice):
            raise TypeError("VectorBatch does not support slicing; use as_array()")
        return self._data[idx]

    def __iter__(self) -> Iterator[Fvec]:
        return iter(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VectorBatch):
            return NotImplemented
        return self._dim == other._dim and np.array_equal(self._data, other._data)

    __hash__ = None

    def as_array(self) -> np.ndarray:
        """Read-only (N, D) view of the batch."""
        return self._data

    def flat(self) -> np.ndarray:
        """Read-only flat view of length N*D."""
        return self._data.reshape(-1)

    def is_finite(self) -> bool:
        return bool(np.isfinite(self._data).all())

    def first_non_finite_row(self) -> int:
        """Index of the first row holding NaN/inf, or -1."""
        bad = ~np.isfinite(self._data).all(axis=1)
        rows = np.flatnonzero(bad)
        return int(rows[0]) if rows.size else -1

    @property
    def nbytes(self) -> int:
        return self._data.nbytes

    def __repr__(self) -> str:
        return f"VectorBatch(count={len(self)}, dimensionality={self._dim})"


# =============================================================================
# .fvecs / .ivecs files (TEXMEX corpus format, as used by SIFT)
# =============================================================================
#
# Each record is a little-endian int32 dimension d followed by d 4-byte
# components (float32 for .fvecs, int32 for .ivecs).

PathLike = Union[str, os.PathLike]


def _read_vecs(path: PathLike) -> np.ndarray:
    raw = np.fromfile(path, dtype="<i4")
    if raw.size == 0:
        raise ValidationError(f"{os.fspath(path)}: file holds no vectors")
    dim = int(raw[0])
    if dim <= 0:
        raise ValidationError(f"{os.fspath(path)}: invalid dimension header {dim}")
    if raw.size % (dim + 1) != 0:
        raise ValidationError(
            f"{os.fspath(path)}: size is not a whole number of {dim}-d records"
        )
    records = raw.reshape(-1, dim + 1)
    bad = np.flatnonzero(records[:, 0] != dim)
    if bad.size:
        raise ValidationError(
            f"{os.fspath(path)}: record {int(bad[0])} has dimension "
            f"{int(records[bad[0], 0])}, expected {dim}"
        )
    return np.ascontiguousarray(records[:, 1:])


def read_fvecs(path: PathLike) -> VectorBatch:
    """Load an ``.fvecs`` file into a :class:`VectorBatch`.

    Raises:
        ValidationError: The file is empty or its records disagree on
            dimensionality.
    """
    body = _read_vecs(path)
    return VectorBatch(body.view("<f4").reshape(-1), body.shape[1])


def read_ivecs(path: PathLike) -> np.ndarray:
    """Load an ``.ivecs`` file (e.g. SIFT ground-truth neighbor ids).

    Returns:
        int32 array of shape (N, D)
    """
    return _read_vecs(path).astype(np.int32)


def write_fvecs(path: PathLike, vectors: Union["VectorBatch", ArrayLike]) -> None:
    """Write vectors in ``.fvecs`` layout."""
    batch = VectorBatch.from_vectors(vectors)
    data = batch.as_array().astype("<f4")
    header = np.full((len(batch), 1), batch.dimensionality, dtype="<i4")
    np.hstack([header, data.view("<i4")]).tofile(path)
