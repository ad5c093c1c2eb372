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
ACORN Graph Index (native)

ctypes bindings for the ``oak_acorn`` shim around the ACORN fork of faiss
(https://github.com/csirianni/ACORN). Every native entry point returns an
``int`` status and fills a caller-provided error buffer; a non-zero status
is raised here as ``RuntimeError`` and converted to ``EngineFault`` by the
dataset's engine boundary.

Native interface::

    int  oak_acorn_build(const float *vectors, size_t n, size_t d,
                         int m, int gamma, int m_beta,
                         const int32_t *attrs, void **out_index,
                         char *err, size_t err_len);
    int  oak_acorn_search(void *index, const float *queries, size_t nq,
                          size_t d, const uint8_t *mask, size_t mask_len,
                          size_t k, int64_t *out_ids, float *out_dist,
                          char *err, size_t err_len);
    void oak_acorn_free(void *index);
"""

import ctypes
import logging
import os
import threading
from typing import Dict, List, Optional

import numpy as np

from .bitmask import Bitmask
from .config import IndexOptions
from .engine import AnnEngine, IndexHandle, RawSearchResult
from .fvecs import VectorBatch
from .metadata import HybridAttributeStore

logger = logging.getLogger(__name__)

_ERR_BUF_LEN = 1024


def _get_platform_candidates() -> List[str]:
    """Get list of potential platform directory names."""
    import platform as plat
    system = plat.system().lower()
    machine = plat.machine().lower()

    # Normalize machine names
    if machine in ("x86_64", "amd64"):
        machine = "x86_64"
    elif machine in ("arm64", "aarch64"):
        machine = "aarch64"

    candidates = [f"{system}-{machine}"]

    if system == "darwin":
        candidates.append(f"{machine}-apple-darwin")
    elif system == "linux":
        candidates.append(f"{machine}-unknown-linux-gnu")
    elif system == "windows" and machine == "x86_64":
        candidates.append("x86_64-pc-windows-msvc")

    return candidates


def _library_name() -> str:
    import platform as plat
    system = plat.system()
    if system == "Darwin":
        return "liboak_acorn.dylib"
    if system == "Windows":
        return "oak_acorn.dll"
    return "liboak_acorn.so"


def _find_library(lib_path: Optional[str] = None) -> Optional[str]:
    """Find the ACORN shim library.

    An explicit ``lib_path`` (or ``OAK_LIB_PATH``) is authoritative: if it
    does not resolve, nothing else is searched. Otherwise the search order is:

    1. Bundled library in wheel (lib/{platform}/, then lib/)
    2. Package directory
    3. ACORN / development build directories
    4. System paths
    """
    lib_name = _library_name()
    explicit = lib_path or os.environ.get("OAK_LIB_PATH")
    if explicit:
        if os.path.isfile(explicit):
            return explicit
        full_path = os.path.join(explicit, lib_name)
        return full_path if os.path.exists(full_path) else None

    pkg_dir = os.path.dirname(__file__)
    search_paths = []

    for platform_dir in _get_platform_candidates():
        search_paths.append(os.path.join(pkg_dir, "lib", platform_dir))
    search_paths.append(os.path.join(pkg_dir, "lib"))
    search_paths.append(pkg_dir)

    search_paths.append(os.path.join(pkg_dir, "..", "..", "build"))
    search_paths.append(os.path.join(pkg_dir, "..", "..", "..", "acorn", "build", "c_api"))

    search_paths.extend([
        "/usr/local/lib",
        "/usr/lib",
        "/opt/homebrew/lib",
        os.path.expanduser("~/.oak/lib"),
    ])

    for path in search_paths:
        full_path = os.path.join(path, lib_name)
        if os.path.exists(full_path):
            return full_path

    return None


class _FFI:
    """FFI bindings to the ACORN shim, one CDLL per resolved path."""

    _libs: Dict[str, ctypes.CDLL] = {}
    _lock = threading.Lock()

    @classmethod
    def get_lib(cls, lib_path: Optional[str] = None) -> ctypes.CDLL:
        path = _find_library(lib_path)
        if path is None:
            raise OSError(
                f"Could not find {_library_name()}. "
                "Build the oak_acorn shim against ACORN and set OAK_LIB_PATH "
                "to the library file or its directory."
            )
        with cls._lock:
            lib = cls._libs.get(path)
            if lib is None:
                logger.debug("loading ACORN library from %s", path)
                lib = ctypes.CDLL(path)
                cls._setup_bindings(lib)
                cls._libs[path] = lib
        return lib

    @staticmethod
    def _setup_bindings(lib: ctypes.CDLL) -> None:
        lib.oak_acorn_build.argtypes = [
            ctypes.POINTER(ctypes.c_float),   # vectors (N×D f32)
            ctypes.c_size_t,                  # n
            ctypes.c_size_t,                  # d
            ctypes.c_int,                     # m
            ctypes.c_int,                     # gamma
            ctypes.c_int,                     # m_beta
            ctypes.POINTER(ctypes.c_int32),   # attrs (N i32)
            ctypes.POINTER(ctypes.c_void_p),  # out_index
            ctypes.c_char_p,                  # err
            ctypes.c_size_t,                  # err_len
        ]
        lib.oak_acorn_build.restype = ctypes.c_int

        lib.oak_acorn_search.argtypes = [
            ctypes.c_void_p,                  # index
            ctypes.POINTER(ctypes.c_float),   # queries (NQ×D f32)
            ctypes.c_size_t,                  # nq
            ctypes.c_size_t,                  # d
            ctypes.POINTER(ctypes.c_uint8),   # mask (N u8)
            ctypes.c_size_t,                  # mask_len
            ctypes.c_size_t,                  # k
            ctypes.POINTER(ctypes.c_int64),   # out_ids (NQ×K)
            ctypes.POINTER(ctypes.c_float),   # out_dist (NQ×K)
            ctypes.c_char_p,                  # err
            ctypes.c_size_t,                  # err_len
        ]
        lib.oak_acorn_search.restype = ctypes.c_int

        lib.oak_acorn_free.argtypes = [ctypes.c_void_p]
        lib.oak_acorn_free.restype = None


def _check_status(status: int, err: ctypes.Array, operation: str) -> None:
    if status != 0:
        message = err.value.decode("utf-8", errors="replace").strip()
        raise RuntimeError(message or f"{operation} failed with status {status}")


class AcornEngine(AnnEngine):
    """
    ACORN predicate-agnostic graph index.

    The library is loaded lazily on the first build, so constructing an
    engine never fails; a missing library surfaces from ``build_index``.

    Example:
        >>> engine = AcornEngine(lib_path="/usr/local/lib/liboak_acorn.so")
        >>> ds = HybridDataset(vectors, attrs, engine=engine)
        >>> ds.build_index(IndexOptions(m=32, gamma=12, m_beta=64))
    """

    name = "acorn"

    def __init__(self, lib_path: Optional[str] = None):
        self._lib_path = lib_path

    @property
    def lib(self) -> ctypes.CDLL:
        return _FFI.get_lib(self._lib_path)

    def build(
        self,
        vectors: VectorBatch,
        options: IndexOptions,
        attributes: HybridAttributeStore,
    ) -> IndexHandle:
        lib = self.lib

        # Ensure contiguous memory layout for zero-copy FFI
        vecs = np.ascontiguousarray(vectors.as_array(), dtype=np.float32)
        attrs = np.ascontiguousarray(attributes.as_array(), dtype=np.int32)
        out_index = ctypes.c_void_p()
        err = ctypes.create_string_buffer(_ERR_BUF_LEN)

        status = lib.oak_acorn_build(
            vecs.ctypes.data_as(ctypes.POINTER(ctypes.c_float)),
            len(vectors),
            vectors.dimensionality,
            options.m,
            options.gamma,
            options.m_beta,
            attrs.ctypes.data_as(ctypes.POINTER(ctypes.c_int32)),
            ctypes.byref(out_index),
            err,
            _ERR_BUF_LEN,
        )
        if status != 0 and out_index.value:
            # Partially built index still has to be released
            lib.oak_acorn_free(out_index)
        _check_status(status, err, "oak_acorn_build")
        if not out_index.value:
            raise RuntimeError("oak_acorn_build returned a null index")

        return IndexHandle(
            out_index,
            lib.oak_acorn_free,
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
        lib = self.lib
        nq = len(queries)

        q = np.ascontiguousarray(queries.as_array(), dtype=np.float32)
        mask_arr = mask.to_ffi()
        ids = np.full((nq, k), -1, dtype=np.int64)
        distances = np.full((nq, k), np.inf, dtype=np.float32)
        err = ctypes.create_string_buffer(_ERR_BUF_LEN)

        status = lib.oak_acorn_search(
            handle.resource,
            q.ctypes.data_as(ctypes.POINTER(ctypes.c_float)),
            nq,
            queries.dimensionality,
            mask_arr.ctypes.data_as(ctypes.POINTER(ctypes.c_uint8)),
            len(mask_arr),
            k,
            ids.ctypes.data_as(ctypes.POINTER(ctypes.c_int64)),
            distances.ctypes.data_as(ctypes.POINTER(ctypes.c_float)),
            err,
            _ERR_BUF_LEN,
        )
        _check_status(status, err, "oak_acorn_search")
        return ids, distances
