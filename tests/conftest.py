"""
Shared fixtures for the OAK test suite.
"""

import numpy as np
import pytest

from oak import ExactEngine, HybridDataset, IndexHandle, OakSettings


# ---------------------------------------------------------------------------
# Stub engines
# ---------------------------------------------------------------------------

class RecordingEngine(ExactEngine):
    """Exact engine that records every boundary call."""

    name = "recording"

    def __init__(self):
        super().__init__()
        self.calls = []
        self.released = []

    def build(self, vectors, options, attributes):
        self.calls.append(("build", len(vectors), options))
        handle = super().build(vectors, options, attributes)
        return IndexHandle(
            handle.resource,
            self.released.append,
            count=handle.count,
            dimensionality=handle.dimensionality,
        )

    def search(self, handle, queries, mask, k):
        self.calls.append(("search", len(queries), mask, k))
        return super().search(handle, queries, mask, k)

    def evaluate_predicate(self, serialized, attributes):
        self.calls.append(("evaluate_predicate", serialized))
        return super().evaluate_predicate(serialized, attributes)

    def count(self, op):
        return sum(1 for call in self.calls if call[0] == op)


class NativeFault(Exception):
    """Stands in for a foreign exception type thrown by a native engine."""


class FaultyEngine(RecordingEngine):
    """Engine whose search (and optionally build) raises a native fault."""

    def __init__(self, fail_build=False, message="segment 3: HNSW level overflow"):
        super().__init__()
        self.fail_build = fail_build
        self.message = message

    def build(self, vectors, options, attributes):
        if self.fail_build:
            raise NativeFault(self.message)
        return super().build(vectors, options, attributes)

    def search(self, handle, queries, mask, k):
        raise NativeFault(self.message)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    """Settings independent of the caller's environment."""
    return OakSettings(default_backend="exact")


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def vectors(rng):
    """200 random 16-d vectors."""
    return rng.standard_normal((200, 16)).astype(np.float32)


@pytest.fixture
def attrs(rng):
    """Category attribute in [0, 10) per vector."""
    return rng.integers(0, 10, size=200).astype(np.int32)


@pytest.fixture
def queries(rng):
    return rng.standard_normal((5, 16)).astype(np.float32)


@pytest.fixture
def engine():
    return RecordingEngine()


@pytest.fixture
def dataset(vectors, attrs, engine, settings):
    ds = HybridDataset(vectors, attrs, engine=engine, settings=settings)
    yield ds
    ds.close()


@pytest.fixture
def indexed(dataset):
    dataset.build_index()
    return dataset


@pytest.fixture
def line_dataset(settings):
    """Five 1-d points at 0..4 with attributes 10..50; easy to reason about."""
    ds = HybridDataset(
        [[0.0], [1.0], [2.0], [3.0], [4.0]],
        [10, 20, 30, 40, 50],
        engine=RecordingEngine(),
        settings=settings,
    )
    ds.build_index()
    yield ds
    ds.close()
