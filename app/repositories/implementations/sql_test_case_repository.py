from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.models.database import TestCaseModel
from app.models.schemas import TestCase, TestCaseCreate, TestCaseUpdate


class SQLTestCaseRepository(ITestCaseRepository):
    """SQLAlchemy implementation of test case repository"""

    def __init__(self, db: Session):
        self.db = db

    async def create(self, test_case: TestCaseCreate) -> TestCase:
        """Create a new test case"""
        db_test_case = TestCaseModel(**test_case.model_dump())
        self.db.add(db_test_case)
        try:
            self.db.commit()
        except SQLAlchemyError:
            # leave the session usable for the next chunk
            self.db.rollback()
            raise
        self.db.refresh(db_test_case)
        return TestCase.model_validate(db_test_case)

    async def get_by_id(self, test_case_id: int) -> Optional[TestCase]:
        """Get test case by ID"""
        db_test_case = self.db.query(TestCaseModel).filter(TestCaseModel.id == test_case_id).first()
        if db_test_case:
            return TestCase.model_validate(db_test_case)
        return None

    async def get_by_signature(self, signature: str, project_id: Optional[str] = None) -> Optional[TestCase]:
        """Get the first test case of a project with the given content signature"""
        query = self.db.query(TestCaseModel).filter(TestCaseModel.signature == signature)
        if project_id is None:
            query = query.filter(TestCaseModel.project_id.is_(None))
        else:
            query = query.filter(TestCaseModel.project_id == project_id)
        db_test_case = query.order_by(TestCaseModel.id).first()
        if db_test_case:
            return TestCase.model_validate(db_test_case)
        return None

    async def list_by_project(self, project_id: Optional[str] = None, skip: int = 0, limit: Optional[int] = None) -> List[TestCase]:
        """List test cases of a project, oldest first"""
        query = self.db.query(TestCaseModel)
        if project_id is not None:
            query = query.filter(TestCaseModel.project_id == project_id)
        query = query.order_by(TestCaseModel.created_at, TestCaseModel.id).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return [TestCase.model_validate(test_case) for test_case in query.all()]

    async def update(self, test_case_id: int, test_case_update: TestCaseUpdate) -> Optional[TestCase]:
        """Update an existing test case"""
        db_test_case = self.db.query(TestCaseModel).filter(TestCaseModel.id == test_case_id).first()
        if not db_test_case:
            return None

        update_data = test_case_update.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(db_test_case, field, value)

        self.db.commit()
        self.db.refresh(db_test_case)
        return TestCase.model_validate(db_test_case)

    async def delete(self, test_case_id: int) -> bool:
        """Delete a test case"""
        db_test_case = self.db.query(TestCaseModel).filter(TestCaseModel.id == test_case_id).first()
        if not db_test_case:
            return False

        self.db.delete(db_test_case)
        self.db.commit()
        return True

    async def delete_many(self, test_case_ids: List[int]) -> int:
        """Delete several test cases in one commit"""
        if not test_case_ids:
            return 0
        removed = (
            self.db.query(TestCaseModel)
            .filter(TestCaseModel.id.in_(test_case_ids))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return removed
