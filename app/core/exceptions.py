"""Domain exceptions for the generation pipeline.

Routes map these to structured JSON responses; anything that is not an
``AppError`` falls through to the global 500 handler in ``main.py``.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base application error carrying a machine-readable ``code``."""

    status_code = 500

    def __init__(self, message: str, code: str = "UNKNOWN") -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class MissingInputError(AppError):
    """Required request fields were not supplied. Nothing was processed."""

    status_code = 400

    def __init__(self, fields: list[str]) -> None:
        super().__init__(
            message=f"Missing required fields: {' and '.join(fields)}",
            code="MISSING_INPUT",
        )
        self.fields = fields


class ChunksNotFoundError(AppError):
    """The document was never chunked, so there is nothing to generate from."""

    status_code = 404

    def __init__(self, doc_id: str, suggestion: Optional[str] = None) -> None:
        suggestion = suggestion or (
            "Please ensure the document has been chunked by generating initial test cases first."
        )
        super().__init__(
            message=f"No chunks found for document {doc_id}. {suggestion}",
            code="CHUNKS_NOT_FOUND",
        )
        self.doc_id = doc_id


class AIGenerationError(AppError):
    """The AI provider call failed or returned something unusable."""

    status_code = 502

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(
            message=f"[{provider}] generation failed: {reason}",
            code="AI_GENERATION_ERROR",
        )
        self.provider = provider
        self.reason = reason


class ReconciliationError(AppError):
    """Duplicate reconciliation could not complete."""

    def __init__(self, reason: str) -> None:
        super().__init__(message=f"Reconciliation failed: {reason}", code="RECONCILIATION_ERROR")
        self.reason = reason
