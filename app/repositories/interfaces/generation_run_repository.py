from abc import ABC, abstractmethod
from typing import List, Optional
from app.models.schemas import GenerationRun


class IGenerationRunRepository(ABC):
    """Interface for (chunk, settings fingerprint) generation run records"""

    @abstractmethod
    async def find(self, chunk_id: str, settings_hash: str) -> Optional[GenerationRun]:
        pass

    @abstractmethod
    async def record(self, run: GenerationRun) -> GenerationRun:
        """Store a run; if one already exists for the pair, return the stored one"""
        pass

    @abstractmethod
    async def list_by_chunk_ids(self, chunk_ids: List[str]) -> List[GenerationRun]:
        pass
