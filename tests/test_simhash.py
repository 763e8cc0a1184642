import pytest

from app.models import schemas
from app.services.simhash import (
    are_simhashes_similar, build_simhash, build_test_case_simhash, fnv1a_64, hamming,
    parse_simhash, tokenize
)


def test_fnv1a_known_vectors():
    assert fnv1a_64("") == 0xCBF29CE484222325
    assert fnv1a_64("a") == 0xAF63DC4C8601EC8C


def test_tokenize_lowercases_and_splits_on_punctuation():
    assert tokenize("  Login, with VALID   credentials! ") == ["login", "with", "valid", "credentials"]


def test_identical_text_gives_identical_hash():
    text = "Verify that a user can log in with valid credentials"
    assert build_simhash(text) == build_simhash(text)
    assert build_simhash(text) == build_simhash(text.upper() + "   ")


def test_empty_text_hashes_to_zero():
    assert build_simhash("") == 0
    assert build_simhash("  ,, ") == 0


def test_single_token_hash_is_its_fnv_hash():
    assert build_simhash("checkout") == fnv1a_64("checkout")


def test_hash_fits_in_64_bits():
    value = build_simhash("a fairly long sentence about checkout flows and coupon codes")
    assert 0 <= value < 2 ** 64


def test_bits_out_of_range_rejected():
    with pytest.raises(ValueError):
        build_simhash("text", bits=65)


def test_hamming():
    assert hamming(0, 0) == 0
    assert hamming(0b1011, 0b0001) == 2
    assert hamming(0, 2 ** 64 - 1) == 64


def test_parse_simhash():
    assert parse_simhash("18446744073709551615") == 2 ** 64 - 1
    assert parse_simhash(7) == 7
    assert parse_simhash(None) is None
    assert parse_simhash("") is None
    assert parse_simhash("not-a-number") is None


def test_similarity_threshold():
    assert are_simhashes_similar("0", str(0b1111), threshold=4)
    assert not are_simhashes_similar("0", str(0b11111), threshold=4)
    assert not are_simhashes_similar(None, "0")


def test_test_case_hash_ignores_priority_and_tags():
    base = {
        "title": "Apply coupon at checkout",
        "test_steps": [{"action": "Enter code SAVE10", "expected_result": "Discount applied"}],
    }
    a = schemas.TestCaseCandidate.model_validate({**base, "priority": "high", "tags": ["a"]})
    b = schemas.TestCaseCandidate.model_validate({**base, "priority": "low", "tags": ["b"]})
    assert build_test_case_simhash(a) == build_test_case_simhash(b)
