from __future__ import annotations

import pytest

from stakepool.state.canonical import canonical_json_bytes, domain_sep_bytes, sha256_hex


def test_canonical_json_is_sorted_and_compact() -> None:
    assert canonical_json_bytes({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'


def test_canonical_json_keeps_large_ints_exact() -> None:
    value = 2**128 - 1
    assert canonical_json_bytes({"x": value}) == ('{"x":%d}' % value).encode("ascii")


def test_canonical_json_rejects_floats() -> None:
    with pytest.raises(TypeError, match="floats"):
        canonical_json_bytes({"x": [1.0]})


def test_canonical_json_rejects_non_str_keys() -> None:
    with pytest.raises(TypeError, match="keys"):
        canonical_json_bytes({1: "x"})


@pytest.mark.parametrize("value", [{"x": "\ud800"}, {"\udfff": 1}, ["ok", {"y": ["\udc00"]}]])
def test_canonical_json_rejects_surrogates(value) -> None:
    with pytest.raises(TypeError, match="surrogate"):
        canonical_json_bytes(value)


def test_sha256_hex_prefix() -> None:
    digest = sha256_hex(b"")
    assert digest == "0xe3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def test_domain_sep_bytes() -> None:
    assert domain_sep_bytes("pool_snapshot") == b"stakepool:pool_snapshot:v1\x00"
    assert domain_sep_bytes("pool_snapshot", version=2) == b"stakepool:pool_snapshot:v2\x00"


@pytest.mark.parametrize("label", ["", "a\x00b"])
def test_domain_sep_rejects_bad_labels(label: str) -> None:
    with pytest.raises((TypeError, ValueError)):
        domain_sep_bytes(label)
