"""
IndexOptions and OakSettings.
"""

import numpy as np
import pytest

from oak import IndexOptions, InvalidOptionError, OakSettings, ValidationError


def test_index_option_defaults():
    opts = IndexOptions()
    assert (opts.m, opts.gamma, opts.m_beta) == (32, 1, 64)


@pytest.mark.parametrize(
    "kwargs",
    [{"m": 0}, {"gamma": -1}, {"m_beta": 0}, {"m": 1.5}, {"gamma": "2"}, {"m": True}],
)
def test_index_options_must_be_positive_ints(kwargs):
    with pytest.raises(InvalidOptionError):
        IndexOptions(**kwargs)


def test_invalid_option_is_validation_error():
    assert issubclass(InvalidOptionError, ValidationError)


def test_index_options_dict_roundtrip():
    opts = IndexOptions(m=16, gamma=12, m_beta=32)
    assert IndexOptions.from_dict(opts.to_dict()) == opts
    assert IndexOptions.from_dict({"gamma": 4}) == IndexOptions(gamma=4)


def test_index_options_rejects_unknown_keys():
    with pytest.raises(InvalidOptionError, match="ef_search"):
        IndexOptions.from_dict({"ef_search": 10})


def test_index_options_from_env():
    env = {"OAK_INDEX_M": "48", "OAK_INDEX_GAMMA": "12", "OAK_INDEX_M_BETA": ""}
    assert IndexOptions.from_env(env=env) == IndexOptions(m=48, gamma=12, m_beta=64)


def test_index_options_from_env_rejects_garbage():
    with pytest.raises(InvalidOptionError):
        IndexOptions.from_env(env={"OAK_INDEX_M": "lots"})
    with pytest.raises(InvalidOptionError):
        IndexOptions.from_env(env={"OAK_INDEX_GAMMA": "0"})


def test_settings_from_env():
    settings = OakSettings.from_env(env={
        "OAK_LIB_PATH": "/opt/oak/liboak_acorn.so",
        "OAK_MAX_MATERIALIZE_BYTES": "4096",
        "OAK_BACKEND": "Exact",
    })

    assert settings.lib_path == "/opt/oak/liboak_acorn.so"
    assert settings.max_materialize_bytes == 4096
    assert settings.default_backend == "exact"


def test_settings_defaults():
    settings = OakSettings.from_env(env={})
    assert settings.to_dict() == {
        "lib_path": None,
        "max_materialize_bytes": None,
        "default_backend": "acorn",
    }


def test_settings_validation():
    with pytest.raises(InvalidOptionError):
        OakSettings(default_backend="hnsw")
    with pytest.raises(InvalidOptionError):
        OakSettings(max_materialize_bytes=0)


def test_index_options_accept_numpy_integers():
    opts = IndexOptions(m=np.int64(16), gamma=np.int32(4))
    assert (opts.m, opts.gamma) == (16, 4)
    assert type(opts.m) is int
    assert opts == IndexOptions(m=16, gamma=4)
