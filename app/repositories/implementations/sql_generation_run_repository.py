from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import structlog
from app.repositories.interfaces.generation_run_repository import IGenerationRunRepository
from app.models.database import GenerationRunModel
from app.models.schemas import GenerationRun

logger = structlog.get_logger()


def _to_schema(row: GenerationRunModel) -> GenerationRun:
    return GenerationRun(
        id=str(row.id),
        doc_id=row.doc_id,
        chunk_id=row.chunk_id,
        settings_hash=row.settings_hash,
        model=row.model,
        saved=row.saved,
        skipped=row.skipped,
        requested=row.requested,
        created_at=row.created_at,
    )


class SQLGenerationRunRepository(IGenerationRunRepository):
    """SQLAlchemy implementation of the generation run store"""

    def __init__(self, db: Session):
        self.db = db

    def _find_row(self, chunk_id: str, settings_hash: str) -> Optional[GenerationRunModel]:
        return (
            self.db.query(GenerationRunModel)
            .filter(
                GenerationRunModel.chunk_id == chunk_id,
                GenerationRunModel.settings_hash == settings_hash,
            )
            .first()
        )

    async def find(self, chunk_id: str, settings_hash: str) -> Optional[GenerationRun]:
        row = self._find_row(chunk_id, settings_hash)
        return _to_schema(row) if row else None

    async def record(self, run: GenerationRun) -> GenerationRun:
        """Store a run, keeping the first one if another writer got there before us"""
        row = GenerationRunModel(**run.model_dump(exclude={"id", "created_at"}))
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self._find_row(run.chunk_id, run.settings_hash)
            logger.warning(
                "Generation run already recorded by another request",
                chunk_id=run.chunk_id,
                settings_hash=run.settings_hash,
            )
            if existing is None:
                raise
            return _to_schema(existing)
        self.db.refresh(row)
        return _to_schema(row)

    async def list_by_chunk_ids(self, chunk_ids: List[str]) -> List[GenerationRun]:
        if not chunk_ids:
            return []
        rows = (
            self.db.query(GenerationRunModel)
            .filter(GenerationRunModel.chunk_id.in_(chunk_ids))
            .order_by(GenerationRunModel.created_at)
            .all()
        )
        return [_to_schema(row) for row in rows]
