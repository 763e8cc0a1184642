import hashlib

from app.models.schemas import Chunk, GenerationOutput
from app.repositories.interfaces.ai_service import IAIService


def _words(seed: str, count: int) -> str:
    # Unrelated tokens per seed keep SimHash fingerprints far apart
    return " ".join(hashlib.sha1(f"{seed}-{i}".encode()).hexdigest()[:10] for i in range(count))


def make_candidate(seed: str, **overrides) -> dict:
    """Build a raw AI candidate whose content is unique to ``seed``"""
    candidate = {
        "title": f"Verify {_words(seed + '-title', 4)}",
        "module": "Checkout",
        "priority": "high",
        "tags": ["generated"],
        "preconditions": "User is logged in",
        "test_steps": [
            {"step_number": 1, "action": _words(seed + "-a1", 6), "expected_result": _words(seed + "-e1", 4)},
            {"step_number": 2, "action": _words(seed + "-a2", 6), "expected_result": _words(seed + "-e2", 4)},
        ],
        "expected_result": "Order is placed",
    }
    candidate.update(overrides)
    return candidate


def make_chunks(doc_id: str, count: int) -> list:
    return [
        Chunk(id=f"{doc_id}-c{i}", doc_id=doc_id, chunk_index=i, text=f"Requirement {i}: {_words(doc_id + str(i), 8)}",
              text_hash=f"h{i}", token_count=10)
        for i in range(count)
    ]


class FakeAIService(IAIService):
    """AI service stand-in: returns scripted candidates per chunk index"""

    provider = "fake"

    def __init__(self, cases_per_chunk: int = 2):
        self.cases_per_chunk = cases_per_chunk
        self.responses = {}
        self.calls = []

    async def generate_test_cases(self, chunk_text, generation_settings, *, doc_id, chunk_index):
        self.calls.append(chunk_index)
        response = self.responses.get(chunk_index)
        if isinstance(response, Exception):
            raise response
        if response is None:
            response = [make_candidate(f"{doc_id}-{chunk_index}-{n}") for n in range(self.cases_per_chunk)]
        return GenerationOutput(candidates=response, usage={"total_tokens": 100})
