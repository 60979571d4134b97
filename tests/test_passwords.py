import pytest

from portal.auth.passwords import hash_password, needs_rehash, verify_password


def test_hash_is_salted_and_verifies():
    h1 = hash_password("abc123ab")
    h2 = hash_password("abc123ab")
    assert h1 != "abc123ab"
    assert h1 != h2
    assert verify_password(h1, "abc123ab")
    assert not verify_password(h1, "abc123ac")
    assert not needs_rehash(h1)


def test_empty_and_malformed_inputs():
    with pytest.raises(ValueError):
        hash_password("")
    assert not verify_password("", "x")
    assert not verify_password("not-a-hash", "abc123ab")
    assert needs_rehash("not-a-hash")
