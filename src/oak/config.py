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
Index options and runtime settings.

Environment variables:
    OAK_INDEX_M, OAK_INDEX_GAMMA, OAK_INDEX_M_BETA
        Override the :class:`IndexOptions` defaults.
    OAK_LIB_PATH
        Path to the native ACORN engine library (file or directory).
    OAK_MAX_MATERIALIZE_BYTES
        Upper bound on ``Dataset.get_data()`` copies. Unset = unlimited.
    OAK_BACKEND
        Default engine for ``create_dataset``: ``acorn`` or ``exact``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

import numpy as np

from .errors import InvalidOptionError

BACKENDS = ("acorn", "exact")


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidOptionError(f"{name} must be a positive integer, got {value!r}")
    if value <= 0:
        raise InvalidOptionError(f"{name} must be a positive integer, got {value}")
    return int(value)


def _env_int(env: Mapping[str, str], key: str) -> Optional[int]:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidOptionError(f"{key} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class IndexOptions:
    """
    Graph index parameters (ACORN parameters).

    The defaults are the ones suggested by the ACORN authors.

    Attributes:
        m: Degree bound for traversed nodes during search
        gamma: Neighbor expansion factor, compensates for predicate sparsity
        m_beta: Compression parameter bounding auxiliary edge storage
    """

    m: int = 32
    gamma: int = 1
    m_beta: int = 64

    def __post_init__(self):
        for name in ("m", "gamma", "m_beta"):
            object.__setattr__(self, name, _positive_int(name, getattr(self, name)))

    def to_dict(self) -> Dict[str, int]:
        return {"m": self.m, "gamma": self.gamma, "m_beta": self.m_beta}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndexOptions":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidOptionError(f"unknown index options: {sorted(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_env(
        cls,
        prefix: str = "OAK_INDEX_",
        env: Optional[Mapping[str, str]] = None,
    ) -> "IndexOptions":
        """Defaults overridden by ``<prefix>M``, ``<prefix>GAMMA``, ``<prefix>M_BETA``."""
        env = os.environ if env is None else env
        overrides = {}
        for f in fields(cls):
            value = _env_int(env, prefix + f.name.upper())
            if value is not None:
                overrides[f.name] = value
        return cls(**overrides)


@dataclass
class OakSettings:
    """Process-level settings, usually read from the environment."""

    lib_path: Optional[str] = None
    max_materialize_bytes: Optional[int] = None
    default_backend: str = "acorn"

    def __post_init__(self):
        if self.max_materialize_bytes is not None:
            self.max_materialize_bytes = _positive_int("max_materialize_bytes", self.max_materialize_bytes)
        if self.default_backend not in BACKENDS:
            raise InvalidOptionError(
                f"default_backend must be one of {BACKENDS}, got {self.default_backend!r}"
            )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "OakSettings":
        env = os.environ if env is None else env
        return cls(
            lib_path=env.get("OAK_LIB_PATH") or None,
            max_materialize_bytes=_env_int(env, "OAK_MAX_MATERIALIZE_BYTES"),
            default_backend=(env.get("OAK_BACKEND") or "acorn").strip().lower(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lib_path": self.lib_path,
            "max_materialize_bytes": self.max_materialize_bytes,
            "default_backend": self.default_backend,
        }
