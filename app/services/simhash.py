"""Token-based SimHash for near-duplicate test case detection.

Each token is hashed with 64-bit FNV-1a; every bit position accumulates +1 when
the token hash has that bit set and -1 otherwise, and the output bit is set
where the total is positive. Similar texts share most tokens and so end up a
few bits apart; ``hamming`` measures that distance.
"""

import re
from typing import Iterable, Optional, Union

import numpy as np

from app.models.schemas import TestCaseBase

SIMHASH_BITS = 64

_FNV_OFFSET_64 = 0xCBF29CE484222325
_FNV_PRIME_64 = 0x100000001B3
_MASK_64 = (1 << 64) - 1

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"\W+")


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text.lower()).strip()


def tokenize(text: str) -> list[str]:
    return [t for t in _NON_WORD.split(normalize_text(text)) if t]


def fnv1a_64(token: str) -> int:
    h = _FNV_OFFSET_64
    for byte in token.encode("utf-8"):
        h ^= byte
        h = (h * _FNV_PRIME_64) & _MASK_64
    return h


def build_simhash(text: str, bits: int = SIMHASH_BITS) -> int:
    """Compute the SimHash of ``text`` as an unsigned integer of ``bits`` bits."""
    if not 0 < bits <= SIMHASH_BITS:
        raise ValueError(f"bits must be between 1 and {SIMHASH_BITS}")

    tokens = tokenize(text)
    if not tokens:
        return 0

    hashes = np.array([fnv1a_64(t) for t in tokens], dtype=np.uint64)
    positions = np.arange(bits, dtype=np.uint64)
    # (tokens x bits) matrix of 0/1, mapped to -1/+1 and summed per bit
    bit_matrix = (hashes[:, None] >> positions) & np.uint64(1)
    weights = (bit_matrix.astype(np.int64) * 2 - 1).sum(axis=0)

    out = 0
    for position in np.flatnonzero(weights > 0):
        out |= 1 << int(position)
    return out


def hamming(a: int, b: int) -> int:
    """Number of differing bits between two fingerprints."""
    return bin(a ^ b).count("1")


def parse_simhash(value: Union[str, int, None]) -> Optional[int]:
    """Parse a stored fingerprint; ``None`` for missing or unreadable values."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def simhash_text(test_case: TestCaseBase) -> str:
    parts: Iterable[str] = [
        test_case.title or "",
        test_case.module or "",
        *(
            f"{step.action or ''}|{step.test_data or ''}|{step.expected_result or ''}"
            for step in test_case.test_steps
        ),
    ]
    return "\n".join(p for p in parts if p)


def build_test_case_simhash(test_case: TestCaseBase) -> str:
    """SimHash of a test case, as the decimal string stored on the record."""
    return str(build_simhash(simhash_text(test_case)))


def are_simhashes_similar(a: Union[str, int], b: Union[str, int], threshold: int = 4) -> bool:
    ha, hb = parse_simhash(a), parse_simhash(b)
    if ha is None or hb is None:
        return False
    return hamming(ha, hb) <= threshold
