from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from app.models.schemas import TestCase
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.core.dependencies import get_test_case_repository

logger = structlog.get_logger()

router = APIRouter(prefix="/test-cases", tags=["test-cases"])


@router.get("/{test_case_id}", response_model=TestCase)
async def get_test_case(
    test_case_id: int,
    repository: ITestCaseRepository = Depends(get_test_case_repository)
):
    """Get a test case by ID"""
    test_case = await repository.get_by_id(test_case_id)
    if not test_case:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Test case not found"
        )
    return test_case


@router.get("/", response_model=List[TestCase])
async def list_test_cases(
    project_id: Optional[str] = Query(None, alias="projectId"),
    skip: int = 0,
    limit: int = 100,
    repository: ITestCaseRepository = Depends(get_test_case_repository)
):
    """List stored test cases, optionally for one project"""
    return await repository.list_by_project(project_id, skip=skip, limit=limit)


@router.delete("/{test_case_id}")
async def delete_test_case(
    test_case_id: int,
    repository: ITestCaseRepository = Depends(get_test_case_repository)
):
    """Delete a test case"""
    success = await repository.delete(test_case_id)
    if not success:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Test case not found"
        )
    logger.info("Test case deleted", test_case_id=test_case_id)
    return {"message": "Test case deleted successfully"}
