"""
PredicateQuery encoding, decoding and evaluation.
"""

import numpy as np
import pytest

from oak import PredicateOp, PredicateQuery, SerializationError


ATTRS = np.array([1, 2, 3, 4, 5], dtype=np.int32)


def test_serialize_scalar():
    assert PredicateQuery.equals(5).serialize() == b'{"op":"eq","value":5}'
    assert PredicateQuery("gt", -3).serialize() == b'{"op":"gt","value":-3}'


def test_serialize_between_and_in():
    assert PredicateQuery.between(1, 10).serialize() == b'{"op":"between","value":1,"upper":10}'
    assert PredicateQuery.one_of(1, 2, 3).serialize() == b'{"op":"in","values":[1,2,3]}'


@pytest.mark.parametrize(
    "query",
    [
        PredicateQuery.equals(7),
        PredicateQuery.not_equals(0),
        PredicateQuery.less_than(-4),
        PredicateQuery.at_most(2 ** 31 - 1),
        PredicateQuery.greater_than(-(2 ** 31)),
        PredicateQuery.at_least(3),
        PredicateQuery.between(-2, 2),
        PredicateQuery.one_of(4, 8),
    ],
)
def test_deserialize_inverts_serialize(query):
    decoded = PredicateQuery.deserialize(query.serialize())
    assert decoded.to_dict() == query.to_dict()


@pytest.mark.parametrize(
    "query",
    [
        PredicateQuery("regex", 1),             # unsupported operator
        PredicateQuery(PredicateOp.EQ, "five"),  # non-integer operand
        PredicateQuery(PredicateOp.EQ, 1.5),
        PredicateQuery(PredicateOp.EQ, True),
        PredicateQuery(PredicateOp.EQ, None),
        PredicateQuery.equals(2 ** 31),         # out of i32 range
        PredicateQuery.between(5, 1),           # inverted bounds
        PredicateQuery(PredicateOp.BETWEEN, 1),  # missing upper
        PredicateQuery.one_of(),                # empty set
        PredicateQuery(PredicateOp.IN, values="123"),
    ],
)
def test_malformed_predicates_fail_to_serialize(query):
    with pytest.raises(SerializationError):
        query.serialize()


@pytest.mark.parametrize(
    "payload",
    [b"", b"not json", b"[1, 2]", b'{"value": 1}', b'{"op": "eq"}', b"\xff\xfe"],
)
def test_malformed_payloads_fail_to_deserialize(payload):
    with pytest.raises(SerializationError):
        PredicateQuery.deserialize(payload)


@pytest.mark.parametrize(
    "query, expected",
    [
        (PredicateQuery.equals(3), [False, False, True, False, False]),
        (PredicateQuery.not_equals(3), [True, True, False, True, True]),
        (PredicateQuery.less_than(3), [True, True, False, False, False]),
        (PredicateQuery.at_most(3), [True, True, True, False, False]),
        (PredicateQuery.greater_than(3), [False, False, False, True, True]),
        (PredicateQuery.at_least(3), [False, False, True, True, True]),
        (PredicateQuery.between(2, 4), [False, True, True, True, False]),
        (PredicateQuery.one_of(1, 5, 9), [True, False, False, False, True]),
    ],
)
def test_matches(query, expected):
    assert query.matches(ATTRS).tolist() == expected


def test_matches_raises_on_malformed_predicate():
    with pytest.raises(SerializationError):
        PredicateQuery("nope", 1).matches(ATTRS)


def test_str_is_wire_form():
    assert str(PredicateQuery.equals(1)) == '{"op":"eq","value":1}'
