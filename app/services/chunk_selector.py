from typing import Iterable, List, Sequence

import structlog

from app.models.schemas import Chunk, GenerationRun
from app.services.coverage import yields_by_chunk

logger = structlog.get_logger()

DEFAULT_COVERAGE_THRESHOLD = 0.7


def processed_chunk_ids(runs: Iterable[GenerationRun], settings_hash: str) -> set[str]:
    return {run.chunk_id for run in runs if run.settings_hash == settings_hash}


def find_remaining_chunks(
    all_chunks: Sequence[Chunk],
    runs: Iterable[GenerationRun],
    settings_hash: str,
) -> List[Chunk]:
    """Chunks not yet processed under ``settings_hash``, in ``chunk_index`` order."""
    done = processed_chunk_ids(runs, settings_hash)
    return [c for c in sorted(all_chunks, key=lambda c: c.chunk_index) if c.id not in done]


def prioritize_by_coverage(
    remaining: Sequence[Chunk],
    runs: Iterable[GenerationRun],
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
) -> List[Chunk]:
    """Reorder chunks so historically under-served ones are generated first.

    Tiers: chunks whose prior runs (under any settings) yielded below the
    threshold, then chunks never attempted, then well-covered chunks. Each
    tier keeps ``chunk_index`` order.
    """
    yields = yields_by_chunk(runs)
    low: List[Chunk] = []
    neutral: List[Chunk] = []
    covered: List[Chunk] = []
    for chunk in sorted(remaining, key=lambda c: c.chunk_index):
        y = yields.get(chunk.id)
        if y is None or y.runs == 0:
            neutral.append(chunk)
        elif y.ratio < coverage_threshold:
            low.append(chunk)
        else:
            covered.append(chunk)

    logger.debug("Chunk priority computed", low=len(low), neutral=len(neutral), covered=len(covered))
    return low + neutral + covered


def select_remaining_chunks(
    all_chunks: Sequence[Chunk],
    runs: Sequence[GenerationRun],
    settings_hash: str,
    prioritize: bool = True,
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD,
) -> List[Chunk]:
    """Chunks still needing generation under ``settings_hash``.

    An empty result means everything was processed; it is not an error.
    """
    remaining = find_remaining_chunks(all_chunks, runs, settings_hash)
    if prioritize and remaining:
        remaining = prioritize_by_coverage(remaining, runs, coverage_threshold)
    logger.info(
        "Remaining chunks selected",
        remaining=len(remaining),
        total=len(all_chunks),
        settings_hash=settings_hash,
        prioritized=prioritize,
    )
    return remaining
