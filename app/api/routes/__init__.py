from fastapi import APIRouter
from app.api.routes import documents, generation, health, reconcile, test_cases

api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router)
api_router.include_router(documents.router)
api_router.include_router(generation.router)
api_router.include_router(reconcile.router)
api_router.include_router(test_cases.router)
