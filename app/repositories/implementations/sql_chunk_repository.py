from typing import List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.repositories.interfaces.chunk_repository import IChunkRepository
from app.models.database import ChunkModel
from app.models.schemas import Chunk


class SQLChunkRepository(IChunkRepository):
    """SQLAlchemy implementation of the requirement chunk store"""

    def __init__(self, db: Session):
        self.db = db

    async def save_chunks(self, chunks: List[Chunk]) -> int:
        """Upsert chunks by id, replacing any older chunking of the same documents"""
        keep_ids = {chunk.id for chunk in chunks}
        for doc_id in {chunk.doc_id for chunk in chunks if chunk.doc_id}:
            (
                self.db.query(ChunkModel)
                .filter(ChunkModel.doc_id == doc_id, ChunkModel.id.notin_(keep_ids))
                .delete(synchronize_session=False)
            )
        for chunk in chunks:
            data = chunk.model_dump(exclude_none=True)
            # merge() turns an existing primary key into an update
            self.db.merge(ChunkModel(**data))
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return len(chunks)

    async def get_by_doc_id(self, doc_id: str) -> List[Chunk]:
        rows = (
            self.db.query(ChunkModel)
            .filter(ChunkModel.doc_id == doc_id)
            .order_by(ChunkModel.chunk_index)
            .all()
        )
        return [Chunk.model_validate(row) for row in rows]
