from fastapi import Depends
from sqlalchemy.orm import Session
from app.config.settings import settings
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.repositories.interfaces.chunk_repository import IChunkRepository
from app.repositories.interfaces.generation_run_repository import IGenerationRunRepository
from app.repositories.interfaces.ai_service import IAIService

from app.repositories.implementations.sql_test_case_repository import SQLTestCaseRepository
from app.repositories.implementations.sql_chunk_repository import SQLChunkRepository
from app.repositories.implementations.sql_generation_run_repository import SQLGenerationRunRepository
from app.repositories.implementations.openai_service import OpenAIService
from app.repositories.implementations.gemini_service import GeminiService

from app.services.chunk_generator import ChunkGenerator
from app.services.generate_more_service import GenerateMoreService
from app.services.reconcile_service import ReconcileService
from app.core.database import get_database


class Container:
    """Dependency injection container"""

    def __init__(self):
        self._ai_service = None

    def test_case_repository(self, db: Session) -> ITestCaseRepository:
        """Get test case repository instance"""
        return SQLTestCaseRepository(db)

    def chunk_repository(self, db: Session) -> IChunkRepository:
        """Get chunk repository instance"""
        return SQLChunkRepository(db)

    def run_repository(self, db: Session) -> IGenerationRunRepository:
        """Get generation run repository instance"""
        return SQLGenerationRunRepository(db)

    def ai_service(self) -> IAIService:
        """Get AI service instance (singleton, provider chosen by AI_PROVIDER)"""
        if self._ai_service is None:
            if settings.ai_provider.lower() == "gemini":
                self._ai_service = GeminiService()
            else:
                self._ai_service = OpenAIService()
        return self._ai_service

    def reconcile_service(self, db: Session) -> ReconcileService:
        """Get reconcile service instance"""
        return ReconcileService(self.test_case_repository(db))

    def generate_more_service(self, db: Session, ai_service: IAIService) -> GenerateMoreService:
        """Get generate-more service instance"""
        run_repository = self.run_repository(db)
        return GenerateMoreService(
            chunk_repository=self.chunk_repository(db),
            run_repository=run_repository,
            chunk_generator=ChunkGenerator(
                test_case_repository=self.test_case_repository(db),
                run_repository=run_repository,
                ai_service=ai_service,
            ),
            reconcile_service=self.reconcile_service(db),
        )


# Global container instance
container = Container()


# Dependency providers for FastAPI
def get_test_case_repository(db: Session = Depends(get_database)) -> ITestCaseRepository:
    """FastAPI dependency for test case repository"""
    return container.test_case_repository(db)


def get_ai_service() -> IAIService:
    """FastAPI dependency for AI service"""
    return container.ai_service()


def get_reconcile_service(db: Session = Depends(get_database)) -> ReconcileService:
    """FastAPI dependency for reconcile service"""
    return container.reconcile_service(db)


def get_generate_more_service(
    db: Session = Depends(get_database),
    ai_service: IAIService = Depends(get_ai_service),
) -> GenerateMoreService:
    """FastAPI dependency for generate-more service"""
    return container.generate_more_service(db, ai_service)
