from abc import ABC, abstractmethod
from typing import List, Optional
from app.models.schemas import TestCase, TestCaseCreate, TestCaseUpdate


class ITestCaseRepository(ABC):
    """Interface for test case repository operations"""
    
    @abstractmethod
    async def create(self, test_case: TestCaseCreate) -> TestCase:
        pass
    
    @abstractmethod
    async def get_by_id(self, test_case_id: int) -> Optional[TestCase]:
        pass

    @abstractmethod
    async def get_by_signature(self, signature: str, project_id: Optional[str] = None) -> Optional[TestCase]:
        """Find a stored case with the same content signature within a project"""
        pass
    
    @abstractmethod
    async def list_by_project(self, project_id: Optional[str] = None, skip: int = 0, limit: Optional[int] = None) -> List[TestCase]:
        """List cases of a project (all cases when project_id is None), oldest first"""
        pass
    
    @abstractmethod
    async def update(self, test_case_id: int, test_case_update: TestCaseUpdate) -> Optional[TestCase]:
        pass
    
    @abstractmethod
    async def delete(self, test_case_id: int) -> bool:
        pass

    @abstractmethod
    async def delete_many(self, test_case_ids: List[int]) -> int:
        """Delete several cases in one transaction and return how many were removed"""
        pass
