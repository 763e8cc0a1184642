from abc import ABC, abstractmethod
from typing import List
from app.models.schemas import Chunk


class IChunkRepository(ABC):
    """Interface for requirement chunk storage"""

    @abstractmethod
    async def save_chunks(self, chunks: List[Chunk]) -> int:
        """Insert or replace chunks by id; returns the number written"""
        pass

    @abstractmethod
    async def get_by_doc_id(self, doc_id: str) -> List[Chunk]:
        """All chunks of a document ordered by chunk_index"""
        pass
