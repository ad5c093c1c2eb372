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
Per-vector inclusion masks.

A :class:`Bitmask` has one boolean per vector of the *original, unfiltered*
collection: position ``i`` says whether vector ``i`` may appear in results.
Values are held as ``bool``; the ``uint8`` form the native engine expects is
produced only by :meth:`Bitmask.to_ffi`.
"""

from typing import TYPE_CHECKING, Iterator, Sequence, Union

import numpy as np

from .errors import MaskLengthError, ValidationError

if TYPE_CHECKING:
    from .metadata import HybridAttributeStore
    from .predicate import PredicateQuery


class Bitmask:
    """
    Read-only boolean mask aligned to a vector collection.

    Example:
        >>> mask = Bitmask([1, 0, 1])
        >>> len(mask), mask.count()
        (3, 2)
        >>> list(mask)
        [True, False, True]
    """

    __slots__ = ("_map",)

    def __init__(self, values: Union[Sequence[int], Sequence[bool], np.ndarray]):
        """
        Args:
            values: Sequence of 0/1 integers or booleans.

        Raises:
            ValidationError: If the input is not one-dimensional or holds
                anything other than 0/1.
        """
        arr = np.asarray(values)
        if arr.ndim != 1:
            raise ValidationError(f"bitmask must be 1D, got {arr.ndim}D")
        if arr.dtype != np.bool_:
            if arr.size and not np.issubdtype(arr.dtype, np.number):
                raise ValidationError(f"bitmask values must be 0 or 1, got dtype {arr.dtype}")
            if arr.size and not np.isin(arr, (0, 1)).all():
                raise ValidationError("bitmask values must be 0 or 1")
        mask = np.array(arr, dtype=np.bool_, copy=True)
        mask.setflags(write=False)
        self._map = mask

    @classmethod
    def all(cls, length: int) -> "Bitmask":
        """Mask admitting every vector."""
        return cls(np.ones(length, dtype=np.bool_))

    @classmethod
    def none(cls, length: int) -> "Bitmask":
        """Mask admitting no vector."""
        return cls(np.zeros(length, dtype=np.bool_))

    @classmethod
    def from_predicate(
        cls,
        predicate: "PredicateQuery",
        attributes: "HybridAttributeStore",
    ) -> "Bitmask":
        """Evaluate ``predicate`` against ``attributes``.

        Goes through the serialized form, so the result is the mask an
        engine would derive from the same encoded predicate.
        """
        from .predicate import PredicateQuery

        decoded = PredicateQuery.deserialize(predicate.serialize())
        return cls(decoded.matches(attributes.as_array()))

    # -- read access ------------------------------------------------------ #

    def __len__(self) -> int:
        return self._map.shape[0]

    def __getitem__(self, idx: int) -> bool:
        return bool(self._map[idx])

    def __iter__(self) -> Iterator[bool]:
        return (bool(v) for v in self._map)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitmask):
            return NotImplemented
        return np.array_equal(self._map, other._map)

    __hash__ = None

    def count(self) -> int:
        """Number of admitted vectors."""
        return int(np.count_nonzero(self._map))

    def indices(self) -> np.ndarray:
        """Positions of admitted vectors, ascending."""
        return np.flatnonzero(self._map)

    def as_array(self) -> np.ndarray:
        """Read-only boolean view."""
        return self._map

    def ensure_length(self, expected: int) -> None:
        if len(self) != expected:
            raise MaskLengthError(expected, len(self))

    def to_ffi(self) -> np.ndarray:
        """Contiguous ``uint8`` copy for the native engine."""
        return np.ascontiguousarray(self._map, dtype=np.uint8)

    def __repr__(self) -> str:
        return f"Bitmask(len={len(self)}, admitted={self.count()})"
