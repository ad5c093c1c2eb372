"""
Bitmask construction, validation and FFI marshalling.
"""

import numpy as np
import pytest

from oak import Bitmask, HybridAttributeStore, MaskLengthError, PredicateQuery, ValidationError


def test_from_int_sequence():
    mask = Bitmask([1, 0, 1, 1])

    assert len(mask) == 4
    assert mask.count() == 3
    assert list(mask) == [True, False, True, True]
    assert mask[1] is False
    np.testing.assert_array_equal(mask.indices(), [0, 2, 3])


def test_from_bools_and_arrays():
    assert Bitmask([True, False]) == Bitmask(np.array([1, 0], dtype=np.uint8))


@pytest.mark.parametrize("values", [[0, 2], [-1, 1], [0.5, 1.0], ["1", "0"]])
def test_rejects_non_binary_values(values):
    with pytest.raises(ValidationError):
        Bitmask(values)


def test_rejects_2d_input():
    with pytest.raises(ValidationError):
        Bitmask([[1, 0], [0, 1]])


def test_all_and_none():
    assert Bitmask.all(3).count() == 3
    assert Bitmask.none(3).count() == 0
    assert len(Bitmask.none(0)) == 0


def test_is_read_only():
    mask = Bitmask([1, 0])
    with pytest.raises(ValueError):
        mask.as_array()[0] = False


def test_caller_buffer_is_copied():
    source = np.array([1, 1, 0], dtype=np.uint8)
    mask = Bitmask(source)
    source[2] = 1
    assert mask.count() == 2


def test_ensure_length():
    mask = Bitmask([1, 0, 1])
    mask.ensure_length(3)

    with pytest.raises(MaskLengthError) as exc_info:
        mask.ensure_length(4)
    assert exc_info.value.expected == 4
    assert exc_info.value.actual == 3


def test_to_ffi_marshals_uint8():
    ffi = Bitmask([True, False, True]).to_ffi()

    assert ffi.dtype == np.uint8
    assert ffi.flags["C_CONTIGUOUS"]
    assert ffi.tolist() == [1, 0, 1]


def test_from_predicate():
    store = HybridAttributeStore([5, 3, 5, 7])

    mask = Bitmask.from_predicate(PredicateQuery.equals(5), store)
    assert list(mask) == [True, False, True, False]

    mask = Bitmask.from_predicate(PredicateQuery.between(3, 5), store)
    assert list(mask) == [True, True, True, False]
