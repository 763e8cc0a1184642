from typing import Any, Callable, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from app.models.schemas import (
    Chunk,
    ChunkGenerationResult,
    GenerationRun,
    GenerationSettings,
    TestCaseCandidate,
    TestCaseCreate,
)
from app.repositories.interfaces.ai_service import IAIService
from app.repositories.interfaces.generation_run_repository import IGenerationRunRepository
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.services.case_signature import build_case_signature
from app.services.settings_hash import build_settings_hash
from app.services.simhash import build_test_case_simhash

logger = structlog.get_logger()

ProgressCallback = Callable[[str], Any]


def _safe_progress(on_progress: Optional[ProgressCallback]) -> Callable[[str], None]:
    def notify(step: str) -> None:
        if on_progress is None:
            return
        try:
            on_progress(step)
        except Exception as e:
            logger.warning("Progress callback failed", step=step, error=str(e))

    return notify


class ChunkGenerator:
    """Generates, de-duplicates and stores test cases for a single chunk"""

    def __init__(
        self,
        test_case_repository: ITestCaseRepository,
        run_repository: IGenerationRunRepository,
        ai_service: IAIService,
    ):
        self.test_case_repository = test_case_repository
        self.run_repository = run_repository
        self.ai_service = ai_service

    async def generate_for_chunk(
        self,
        doc_id: str,
        chunk: Chunk,
        generation_settings: GenerationSettings,
        project_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ChunkGenerationResult:
        """Run generation for one chunk.

        Never raises: a failure is reported through ``error`` with
        ``saved=0, skipped=0`` so the batch can move on to the next chunk.
        A chunk already processed under the same settings is not sent to the
        model again; its recorded counts come back with ``reused=True``.
        """
        notify = _safe_progress(on_progress)
        position = chunk.chunk_index + 1

        try:
            settings_hash = build_settings_hash(generation_settings)
            existing = await self.run_repository.find(chunk.id, settings_hash)
            if existing:
                logger.info("Reusing existing generation run", chunk_id=chunk.id, chunk_index=chunk.chunk_index)
                notify(f"Chunk {position} already processed")
                return ChunkGenerationResult(
                    chunk_id=chunk.id,
                    chunk_index=chunk.chunk_index,
                    saved=existing.saved,
                    skipped=existing.skipped,
                    reused=True,
                )

            notify(f"Processing chunk {position}...")
            output = await self.ai_service.generate_test_cases(
                chunk.text,
                generation_settings,
                doc_id=doc_id,
                chunk_index=chunk.chunk_index,
            )
            candidates = output.candidates
            if len(candidates) > generation_settings.max_cases:
                logger.warning(
                    "Model returned more candidates than requested; truncating",
                    returned=len(candidates),
                    max_cases=generation_settings.max_cases,
                )
                candidates = candidates[: generation_settings.max_cases]

            notify(f"Saving test cases from chunk {position}...")
            saved, skipped = await self._save_candidates(candidates, doc_id, chunk, generation_settings, project_id)

            await self.run_repository.record(
                GenerationRun(
                    doc_id=doc_id,
                    chunk_id=chunk.id,
                    settings_hash=settings_hash,
                    model=generation_settings.model,
                    saved=saved,
                    skipped=skipped,
                    requested=generation_settings.max_cases,
                )
            )

            notify(f"Chunk {position} complete: {saved} saved, {skipped} skipped")
            logger.info(
                "Chunk generation complete",
                chunk_id=chunk.id,
                chunk_index=chunk.chunk_index,
                saved=saved,
                skipped=skipped,
                usage=output.usage,
            )
            return ChunkGenerationResult(
                chunk_id=chunk.id,
                chunk_index=chunk.chunk_index,
                saved=saved,
                skipped=skipped,
            )
        except Exception as e:
            logger.error("Chunk generation failed", chunk_id=chunk.id, chunk_index=chunk.chunk_index, error=str(e))
            return ChunkGenerationResult(
                chunk_id=chunk.id,
                chunk_index=chunk.chunk_index,
                error=str(e) or type(e).__name__,
            )

    async def _save_candidates(
        self,
        candidates: List[Any],
        doc_id: str,
        chunk: Chunk,
        generation_settings: GenerationSettings,
        project_id: Optional[str],
    ) -> Tuple[int, int]:
        saved = 0
        skipped = 0
        seen: set[str] = set()

        for raw in candidates:
            try:
                candidate = TestCaseCandidate.model_validate(raw)
            except ValidationError as e:
                skipped += 1
                logger.warning("Rejected malformed candidate", chunk_id=chunk.id, errors=e.error_count())
                continue

            signature = build_case_signature(candidate)
            if signature in seen or await self.test_case_repository.get_by_signature(signature, project_id):
                skipped += 1
                logger.debug("Skipped duplicate candidate", chunk_id=chunk.id, signature=signature)
                continue
            seen.add(signature)

            await self.test_case_repository.create(
                TestCaseCreate(
                    **candidate.model_dump(),
                    project_id=project_id,
                    doc_id=doc_id,
                    chunk_id=chunk.id,
                    chunk_index=chunk.chunk_index,
                    signature=signature,
                    simhash=build_test_case_simhash(candidate),
                    source_model=generation_settings.model,
                )
            )
            saved += 1

        return saved, skipped
