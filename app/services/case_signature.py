import hashlib
import re

from app.models.schemas import TestCaseBase

_WHITESPACE = re.compile(r"\s+")


def _clean(value) -> str:
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value).strip().lower())


def canonical_case(test_case: TestCaseBase) -> str:
    steps = "||".join(
        f"{_clean(s.action)}|{_clean(s.test_data)}|{_clean(s.expected_result)}"
        for s in test_case.test_steps
    )
    priority = test_case.priority.value if test_case.priority else ""
    return "##".join(
        [
            _clean(test_case.title),
            _clean(test_case.module),
            _clean(priority),
            steps,
            _clean(test_case.preconditions),
            _clean(test_case.expected_result),
        ]
    )


def build_case_signature(test_case: TestCaseBase) -> str:
    """Deterministic content signature (case- and whitespace-insensitive).

    Two cases with the same signature are exact duplicates; near duplicates
    are left to SimHash reconciliation.
    """
    return hashlib.sha1(canonical_case(test_case).encode("utf-8")).hexdigest()
