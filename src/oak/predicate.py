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
Scalar attribute predicates for hybrid search.

A :class:`PredicateQuery` compares the single i32 attribute of each vector
against constant operands. Its wire form is compact UTF-8 JSON::

    {"op": "eq", "value": 5}
    {"op": "between", "value": 1, "upper": 10}
    {"op": "in", "values": [1, 2, 3]}

Example:
    >>> q = PredicateQuery.equals(5)
    >>> q.serialize()
    b'{"op":"eq","value":5}'
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .errors import SerializationError

I32_MIN = -(2 ** 31)
I32_MAX = 2 ** 31 - 1


class PredicateOp(str, Enum):
    """Comparison operators over the vector attribute."""
    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LE = "le"
    GT = "gt"
    GE = "ge"
    BETWEEN = "between"  # inclusive on both ends
    IN = "in"


_SCALAR_OPS = {
    PredicateOp.EQ: np.equal,
    PredicateOp.NE: np.not_equal,
    PredicateOp.LT: np.less,
    PredicateOp.LE: np.less_equal,
    PredicateOp.GT: np.greater,
    PredicateOp.GE: np.greater_equal,
}


def _check_i32(name: str, operand: Any) -> int:
    if isinstance(operand, bool) or not isinstance(operand, (int, np.integer)):
        raise SerializationError(
            f"operand '{name}' must be an i32 integer, got {type(operand).__name__}",
            details={"operand": name},
        )
    if not I32_MIN <= int(operand) <= I32_MAX:
        raise SerializationError(
            f"operand '{name}' is out of i32 range: {operand}",
            details={"operand": name},
        )
    return int(operand)


@dataclass(frozen=True)
class PredicateQuery:
    """
    A single comparison against the per-vector attribute.

    Construction is lenient; operands are checked when the predicate is
    serialized, which is the point where a malformed predicate surfaces as
    :class:`SerializationError`.
    """

    op: Any
    value: Any = None
    upper: Any = None
    values: Optional[Tuple[Any, ...]] = None

    # -- convenience constructors ----------------------------------------- #

    @classmethod
    def equals(cls, value: int) -> "PredicateQuery":
        return cls(PredicateOp.EQ, value)

    @classmethod
    def not_equals(cls, value: int) -> "PredicateQuery":
        return cls(PredicateOp.NE, value)

    @classmethod
    def less_than(cls, value: int) -> "PredicateQuery":
        return cls(PredicateOp.LT, value)

    @classmethod
    def at_most(cls, value: int) -> "PredicateQuery":
        return cls(PredicateOp.LE, value)

    @classmethod
    def greater_than(cls, value: int) -> "PredicateQuery":
        return cls(PredicateOp.GT, value)

    @classmethod
    def at_least(cls, value: int) -> "PredicateQuery":
        return cls(PredicateOp.GE, value)

    @classmethod
    def between(cls, lower: int, upper: int) -> "PredicateQuery":
        return cls(PredicateOp.BETWEEN, lower, upper=upper)

    @classmethod
    def one_of(cls, *values: int) -> "PredicateQuery":
        return cls(PredicateOp.IN, values=tuple(values))

    # -- encoding --------------------------------------------------------- #

    def to_dict(self) -> Dict[str, Any]:
        """Validated dict form of the predicate.

        Raises:
            SerializationError: Unsupported operator or invalid operands.
        """
        try:
            op = PredicateOp(self.op)
        except ValueError:
            raise SerializationError(
                f"unsupported predicate operator: {self.op!r}",
                details={"op": repr(self.op)},
            ) from None

        if op in _SCALAR_OPS:
            return {"op": op.value, "value": _check_i32("value", self.value)}

        if op is PredicateOp.BETWEEN:
            lower = _check_i32("value", self.value)
            upper = _check_i32("upper", self.upper)
            if lower > upper:
                raise SerializationError(
                    f"between bounds are inverted: {lower} > {upper}"
                )
            return {"op": op.value, "value": lower, "upper": upper}

        # IN
        if self.values is None or isinstance(self.values, (str, bytes)):
            raise SerializationError("'in' predicate requires a sequence of values")
        try:
            members = list(self.values)
        except TypeError:
            raise SerializationError("'in' predicate requires a sequence of values") from None
        if not members:
            raise SerializationError("'in' predicate requires at least one value")
        return {
            "op": op.value,
            "values": [_check_i32(f"values[{i}]", v) for i, v in enumerate(members)],
        }

    def serialize(self) -> bytes:
        """Encode for the engine's predicate evaluator."""
        return json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PredicateQuery":
        if not isinstance(data, dict) or "op" not in data:
            raise SerializationError("predicate must be an object with an 'op' field")
        values = data.get("values")
        query = cls(
            op=data["op"],
            value=data.get("value"),
            upper=data.get("upper"),
            values=tuple(values) if isinstance(values, list) else values,
        )
        # Round through to_dict so decoded predicates meet the same rules
        query.to_dict()
        return query

    @classmethod
    def deserialize(cls, payload: bytes) -> "PredicateQuery":
        """Inverse of :meth:`serialize`."""
        try:
            data = json.loads(payload.decode("utf-8") if isinstance(payload, bytes) else payload)
        except (UnicodeDecodeError, ValueError, TypeError) as e:
            raise SerializationError(f"malformed predicate payload: {e}") from e
        return cls.from_dict(data)

    # -- evaluation ------------------------------------------------------- #

    def matches(self, attrs: np.ndarray) -> np.ndarray:
        """Boolean array: which attribute values satisfy the predicate."""
        encoded = self.to_dict()
        op = PredicateOp(encoded["op"])
        attrs = np.asarray(attrs, dtype=np.int32)

        if op in _SCALAR_OPS:
            return _SCALAR_OPS[op](attrs, encoded["value"])
        if op is PredicateOp.BETWEEN:
            return (attrs >= encoded["value"]) & (attrs <= encoded["upper"])
        return np.isin(attrs, np.asarray(encoded["values"], dtype=np.int32))

    def __str__(self) -> str:
        try:
            return self.serialize().decode("utf-8")
        except SerializationError:
            return repr(self)
