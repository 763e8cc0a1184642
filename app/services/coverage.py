from dataclasses import dataclass
from typing import Dict, Iterable, List

from app.models.schemas import Chunk, ChunkCoverage, DocumentCoverage, GenerationRun

HIGH_COVERAGE = 0.8
MEDIUM_COVERAGE = 0.3


@dataclass
class ChunkYield:
    runs: int = 0
    saved: int = 0
    skipped: int = 0
    requested: int = 0

    @property
    def ratio(self) -> float:
        """Saved cases per requested case; ``saved + skipped`` stands in for runs that did not record a request size."""
        denominator = self.requested or (self.saved + self.skipped)
        if denominator <= 0:
            return 0.0
        return min(self.saved / denominator, 1.0)


def yields_by_chunk(runs: Iterable[GenerationRun]) -> Dict[str, ChunkYield]:
    """Aggregate historical yield per chunk across runs under any settings."""
    yields: Dict[str, ChunkYield] = {}
    for run in runs:
        y = yields.setdefault(run.chunk_id, ChunkYield())
        y.runs += 1
        y.saved += run.saved
        y.skipped += run.skipped
        y.requested += run.requested
    return yields


def coverage_level(coverage: float) -> str:
    if coverage >= HIGH_COVERAGE:
        return "high"
    if coverage >= MEDIUM_COVERAGE:
        return "medium"
    return "low"


def document_coverage(doc_id: str, chunks: List[Chunk], runs: Iterable[GenerationRun]) -> DocumentCoverage:
    yields = yields_by_chunk(runs)
    items: List[ChunkCoverage] = []
    saved_total = 0
    requested_total = 0
    for chunk in sorted(chunks, key=lambda c: c.chunk_index):
        y = yields.get(chunk.id, ChunkYield())
        items.append(
            ChunkCoverage(
                chunk_id=chunk.id,
                chunk_index=chunk.chunk_index,
                runs=y.runs,
                saved=y.saved,
                skipped=y.skipped,
                coverage=y.ratio,
                level=coverage_level(y.ratio),
            )
        )
        saved_total += y.saved
        requested_total += y.requested or (y.saved + y.skipped)

    overall = min(saved_total / requested_total, 1.0) if requested_total else 0.0
    return DocumentCoverage(doc_id=doc_id, overall=overall, chunks=items)
