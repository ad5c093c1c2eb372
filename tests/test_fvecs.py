"""
VectorBatch construction and access.
"""

import numpy as np
import pytest

from oak import ValidationError, VectorBatch, read_fvecs, read_ivecs, write_fvecs


def test_flat_construction():
    batch = VectorBatch([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], dimensionality=3)

    assert len(batch) == 2
    assert batch.count == 2
    assert batch.dimensionality == 3
    np.testing.assert_array_equal(batch[1], np.array([4.0, 5.0, 6.0], dtype=np.float32))
    assert batch.as_array().dtype == np.float32
    assert batch.as_array().flags["C_CONTIGUOUS"]


def test_flat_length_must_be_multiple_of_dimensionality():
    with pytest.raises(ValidationError, match="not a multiple"):
        VectorBatch([1.0, 2.0, 3.0], dimensionality=2)


@pytest.mark.parametrize("dim", [0, -1])
def test_dimensionality_must_be_positive(dim):
    with pytest.raises(ValidationError, match="positive"):
        VectorBatch([1.0, 2.0], dimensionality=dim)


def test_dimensionality_must_be_integer():
    with pytest.raises(ValidationError):
        VectorBatch([1.0, 2.0], dimensionality=True)


def test_batch_is_immutable_and_owns_its_data():
    source = np.arange(6, dtype=np.float32)
    batch = VectorBatch(source, dimensionality=2)

    source[0] = 99.0
    assert batch[0][0] == 0.0, "batch must not alias the caller's buffer"

    with pytest.raises(ValueError):
        batch.as_array()[0, 0] = 1.0


def test_from_vectors_2d():
    batch = VectorBatch.from_vectors([[1, 2], [3, 4], [5, 6]])

    assert len(batch) == 3
    assert batch.dimensionality == 2
    np.testing.assert_array_equal(batch.flat(), np.arange(1, 7, dtype=np.float32))


def test_from_vectors_rejects_ragged_input():
    with pytest.raises(ValidationError):
        VectorBatch.from_vectors([[1.0, 2.0], [3.0]])


def test_from_vectors_dimension_mismatch():
    with pytest.raises(ValidationError, match="mismatch"):
        VectorBatch.from_vectors([[1.0, 2.0]], dimensionality=3)


def test_empty_batch_needs_dimensionality():
    with pytest.raises(ValidationError):
        VectorBatch.from_vectors([])

    batch = VectorBatch.from_vectors([], dimensionality=4)
    assert len(batch) == 0
    assert batch.dimensionality == 4


def test_non_finite_detection():
    batch = VectorBatch.from_vectors([[0.0, 1.0], [np.nan, 1.0], [np.inf, 0.0]])

    assert not batch.is_finite()
    assert batch.first_non_finite_row() == 1

    clean = VectorBatch.from_vectors([[0.0, 1.0]])
    assert clean.is_finite()
    assert clean.first_non_finite_row() == -1


def test_equality():
    a = VectorBatch([1.0, 2.0], dimensionality=2)
    b = VectorBatch.from_vectors([[1.0, 2.0]])
    c = VectorBatch([1.0, 2.0], dimensionality=1)

    assert a == b
    assert a != c


# ---------------------------------------------------------------------------
# .fvecs / .ivecs files
# ---------------------------------------------------------------------------

def _write_records(path, rows, dims, dtype):
    with open(path, "wb") as f:
        for row, dim in zip(rows, dims):
            np.array([dim], dtype="<i4").tofile(f)
            np.asarray(row, dtype=dtype).tofile(f)


def test_fvecs_file_roundtrip(tmp_path):
    vectors = np.arange(12, dtype=np.float32).reshape(4, 3) / 7
    path = tmp_path / "base.fvecs"

    write_fvecs(path, vectors)
    batch = read_fvecs(path)

    assert batch.dimensionality == 3
    assert np.array_equal(batch.as_array(), vectors)
    assert path.stat().st_size == 4 * (1 + 3) * 4


def test_read_ivecs(tmp_path):
    path = tmp_path / "groundtruth.ivecs"
    _write_records(path, [[3, 1], [0, 2], [7, 5]], [2, 2, 2], "<i4")

    ids = read_ivecs(path)
    assert ids.dtype == np.int32
    assert ids.tolist() == [[3, 1], [0, 2], [7, 5]]


def test_read_fvecs_rejects_inconsistent_dimensions(tmp_path):
    path = tmp_path / "mixed.fvecs"
    _write_records(path, [[1.0, 2.0], [3.0], [4.0, 5.0, 6.0]], [2, 1, 3], "<f4")

    with pytest.raises(ValidationError):
        read_fvecs(path)


def test_read_fvecs_rejects_truncated_file(tmp_path):
    path = tmp_path / "short.fvecs"
    _write_records(path, [[1.0, 2.0, 3.0]], [3], "<f4")
    with open(path, "ab") as f:
        np.array([3], dtype="<i4").tofile(f)

    with pytest.raises(ValidationError):
        read_fvecs(path)


@pytest.mark.parametrize("payload", [b"", np.array([0], dtype="<i4").tobytes()])
def test_read_fvecs_rejects_empty_or_zero_dimension(tmp_path, payload):
    path = tmp_path / "bad.fvecs"
    path.write_bytes(payload)
    with pytest.raises(ValidationError):
        read_fvecs(path)
