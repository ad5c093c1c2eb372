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
Hybrid search metadata: one i32 attribute per vector.
"""

from typing import Iterator, Optional, Sequence, Union

import numpy as np

from .bitmask import Bitmask
from .errors import MaskLengthError, ValidationError
from .predicate import I32_MAX, I32_MIN


class HybridAttributeStore:
    """
    Attributes over the vectors of a dataset, for hybrid search.

    At most one attribute per vector, always a signed 32-bit integer.
    Filtering never mutates a store; :meth:`derive_filtered` returns a new
    one that remembers the mask it was derived with.

    Example:
        >>> store = HybridAttributeStore([10, 20, 30, 40, 50])
        >>> filtered = store.derive_filtered(Bitmask([1, 0, 1, 0, 1]))
        >>> list(filtered)
        [10, 30, 50]
    """

    __slots__ = ("_attrs", "_mask")

    def __init__(self, attrs: Union[Sequence[int], np.ndarray], mask: Optional[Bitmask] = None):
        arr = np.asarray(attrs)
        if arr.ndim != 1:
            raise ValidationError(f"attributes must be 1D, got {arr.ndim}D")
        if arr.size:
            if not np.issubdtype(arr.dtype, np.integer):
                raise ValidationError(f"attributes must be integers, got dtype {arr.dtype}")
            if arr.min() < I32_MIN or arr.max() > I32_MAX:
                raise ValidationError("attributes must fit in a signed 32-bit integer")
        data = np.array(arr, dtype=np.int32, copy=True)
        data.setflags(write=False)
        self._attrs = data
        self._mask = mask

    def derive_filtered(self, mask: Bitmask) -> "HybridAttributeStore":
        """New store keeping only attributes where ``mask`` is set.

        Relative order of kept attributes is preserved and the receiver is
        left untouched.

        Raises:
            MaskLengthError: If ``len(mask) != len(self)``.
        """
        if not isinstance(mask, Bitmask):
            mask = Bitmask(mask)
        if len(mask) != len(self):
            raise MaskLengthError(len(self), len(mask))
        return HybridAttributeStore(self._attrs[mask.as_array()], mask=mask)

    @property
    def mask(self) -> Optional[Bitmask]:
        """Mask this store was derived with, if any."""
        return self._mask

    def is_filtered(self) -> bool:
        return self._mask is not None

    def as_array(self) -> np.ndarray:
        """Read-only int32 view of the attributes."""
        return self._attrs

    def __len__(self) -> int:
        return self._attrs.shape[0]

    def __getitem__(self, idx: int) -> int:
        return int(self._attrs[idx])

    def __iter__(self) -> Iterator[int]:
        return (int(v) for v in self._attrs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HybridAttributeStore):
            return NotImplemented
        return np.array_equal(self._attrs, other._attrs)

    __hash__ = None

    def __repr__(self) -> str:
        return f"HybridAttributeStore(len={len(self)}, filtered={self.is_filtered()})"
