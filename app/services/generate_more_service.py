import asyncio
from typing import List, Optional

import structlog

from app.config.settings import settings
from app.core.exceptions import ChunksNotFoundError, MissingInputError
from app.models.schemas import (
    Chunk,
    ChunkDocumentResponse,
    ChunkGenerationResult,
    DocumentCoverage,
    GenerateMoreRequest,
    GenerateMoreResponse,
    GenerateMoreStatus,
    GenerationRun,
    ReconciliationSummary,
)
from app.repositories.interfaces.chunk_repository import IChunkRepository
from app.repositories.interfaces.generation_run_repository import IGenerationRunRepository
from app.services.chunk_generator import ChunkGenerator
from app.services.chunk_selector import find_remaining_chunks, select_remaining_chunks
from app.services.chunking import chunk_requirement
from app.services.coverage import document_coverage
from app.services.reconcile_service import ReconcileService
from app.services.settings_hash import build_settings_hash

logger = structlog.get_logger()


class GenerateMoreService:
    """Drives resumable, batched test case generation over a chunked document.

    Chunks are processed one at a time, never concurrently, with a fixed
    pause between provider calls. A batch cannot be cancelled once started.
    """

    def __init__(
        self,
        chunk_repository: IChunkRepository,
        run_repository: IGenerationRunRepository,
        chunk_generator: ChunkGenerator,
        reconcile_service: ReconcileService,
        pacing_delay_seconds: Optional[float] = None,
    ):
        self.chunk_repository = chunk_repository
        self.run_repository = run_repository
        self.chunk_generator = chunk_generator
        self.reconcile_service = reconcile_service
        self.pacing_delay_seconds = (
            settings.generation_pacing_delay_seconds if pacing_delay_seconds is None else pacing_delay_seconds
        )

    async def chunk_document(
        self,
        doc_id: str,
        text: str,
        max_chars: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> ChunkDocumentResponse:
        chunks = chunk_requirement(
            doc_id,
            text,
            max_chars=max_chars or settings.chunk_max_chars,
            overlap=settings.chunk_overlap if overlap is None else overlap,
        )
        await self.chunk_repository.save_chunks(chunks)
        return ChunkDocumentResponse(doc_id=doc_id, total_chunks=len(chunks), chunks=chunks)

    async def get_chunks(self, doc_id: str) -> List[Chunk]:
        return await self.chunk_repository.get_by_doc_id(doc_id)

    async def get_document_coverage(self, doc_id: str) -> DocumentCoverage:
        chunks = await self.chunk_repository.get_by_doc_id(doc_id)
        if not chunks:
            raise ChunksNotFoundError(doc_id)
        runs = await self.run_repository.list_by_chunk_ids([c.id for c in chunks])
        return document_coverage(doc_id, chunks, runs)

    async def generate_more(self, request: GenerateMoreRequest) -> GenerateMoreResponse:
        """Generate test cases for the next batch of unprocessed chunks.

        Raises MissingInputError / ChunksNotFoundError before any chunk is
        touched. Per-chunk failures are reported in ``results`` and the batch
        carries on; reconciliation failures are logged and left out of the
        response.
        """
        missing = [name for name, value in (("docId", request.doc_id), ("settings", request.settings)) if not value]
        if missing:
            raise MissingInputError(missing)

        doc_id = request.doc_id
        generation_settings = request.settings
        max_chunks = request.max_chunks_per_call or settings.default_max_chunks_per_call
        settings_hash = build_settings_hash(generation_settings)

        logger.info(
            "Generate more started",
            doc_id=doc_id,
            project_id=request.project_id,
            max_chunks=max_chunks,
            settings_hash=settings_hash,
            model=generation_settings.model,
        )

        # Caller-supplied chunks take precedence over the chunk store
        if request.chunks:
            all_chunks = list(request.chunks)
        else:
            all_chunks = await self.chunk_repository.get_by_doc_id(doc_id)

        if not all_chunks:
            raise ChunksNotFoundError(doc_id)

        runs = await self._resolve_runs(all_chunks, request.runs)
        remaining = select_remaining_chunks(
            all_chunks,
            runs,
            settings_hash,
            prioritize=request.use_coverage_prioritization,
            coverage_threshold=settings.coverage_threshold,
        )

        if not remaining:
            logger.info("All chunks already processed", doc_id=doc_id, settings_hash=settings_hash)
            return GenerateMoreResponse(
                success=True,
                total_chunks=len(all_chunks),
                settings_hash=settings_hash,
                message="All chunks have already been processed with these settings",
            )

        batch = remaining[:max_chunks]
        results: List[ChunkGenerationResult] = []
        for position, chunk in enumerate(batch):
            if position > 0 and self.pacing_delay_seconds > 0:
                await asyncio.sleep(self.pacing_delay_seconds)

            logger.info("Processing chunk", chunk_index=chunk.chunk_index, total_chunks=len(all_chunks))
            result = await self.chunk_generator.generate_for_chunk(
                doc_id,
                chunk,
                generation_settings,
                project_id=request.project_id,
                on_progress=lambda step: logger.info("Chunk progress", step=step),
            )
            results.append(result)

        final_remaining = max(len(remaining) - len(batch), 0)
        response = GenerateMoreResponse(
            success=True,
            processed_chunks=len(batch),
            remaining_chunks=final_remaining,
            total_chunks=len(all_chunks),
            saved=sum(r.saved for r in results),
            skipped=sum(r.skipped for r in results),
            reused=sum(1 for r in results if r.reused),
            results=results,
            settings_hash=settings_hash,
        )

        if response.saved > 0 and final_remaining == 0:
            response.reconciliation = await self._reconcile(request.project_id)

        logger.info(
            "Generate more batch complete",
            doc_id=doc_id,
            processed=response.processed_chunks,
            remaining=response.remaining_chunks,
            saved=response.saved,
            skipped=response.skipped,
            reused=response.reused,
            failed=sum(1 for r in results if r.error),
        )
        return response

    async def get_status(self, doc_id: str, settings_hash: str) -> GenerateMoreStatus:
        """Read-only progress of a document under one settings fingerprint"""
        missing = [name for name, value in (("docId", doc_id), ("settingsHash", settings_hash)) if not value]
        if missing:
            raise MissingInputError(missing)

        all_chunks = await self.chunk_repository.get_by_doc_id(doc_id)
        runs = await self.run_repository.list_by_chunk_ids([c.id for c in all_chunks])
        remaining = find_remaining_chunks(all_chunks, runs, settings_hash)
        return GenerateMoreStatus(
            total_chunks=len(all_chunks),
            remaining_chunks=len(remaining),
            processed_chunks=len(all_chunks) - len(remaining),
            can_generate_more=len(remaining) > 0,
        )

    async def _resolve_runs(
        self,
        all_chunks: List[Chunk],
        client_runs: Optional[List[GenerationRun]],
    ) -> List[GenerationRun]:
        if client_runs is not None:
            return list(client_runs)
        # Look runs up by chunk id so caller-supplied chunks still match stored runs
        return await self.run_repository.list_by_chunk_ids([c.id for c in all_chunks])

    async def _reconcile(self, project_id: Optional[str]) -> Optional[ReconciliationSummary]:
        try:
            logger.info("Running post-generation reconciliation", project_id=project_id)
            result = await self.reconcile_service.reconcile_project_duplicates(
                project_id, settings.reconcile_hamming_threshold
            )
        except Exception as e:
            # generation already succeeded; reconciliation is best-effort
            logger.error("Post-generation reconciliation failed", project_id=project_id, error=str(e))
            return None
        return ReconciliationSummary(
            duplicate_groups=result.duplicate_groups,
            cases_removed=result.cases_removed,
            cases_merged=result.cases_merged,
        )
