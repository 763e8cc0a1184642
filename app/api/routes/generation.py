from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
import structlog

from app.core.exceptions import AppError
from app.core.dependencies import get_generate_more_service
from app.models.schemas import (
    GenerateMoreRequest, GenerateMoreResponse, GenerateMoreStatus,
    GenerationSettings, SettingsHashResponse
)
from app.services.generate_more_service import GenerateMoreService
from app.services.settings_hash import build_settings_hash

logger = structlog.get_logger()

router = APIRouter(prefix="/generate-more", tags=["generation"])


def _error_response(status_code: int, message: str) -> JSONResponse:
    body = GenerateMoreResponse(success=False, error=message, total_chunks=0)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True)
    )


@router.post("", response_model=GenerateMoreResponse, response_model_by_alias=True, response_model_exclude_none=True)
async def generate_more(
    request: GenerateMoreRequest,
    service: GenerateMoreService = Depends(get_generate_more_service)
):
    """Generate test cases for the next batch of unprocessed chunks"""
    try:
        return await service.generate_more(request)
    except AppError as e:
        logger.warning("Generate more rejected", doc_id=request.doc_id, code=e.code, error=e.message)
        return _error_response(e.status_code, e.message)
    except Exception as e:
        logger.error("Generate more failed", doc_id=request.doc_id, error=str(e), exc_info=True)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Failed to generate more test cases")


@router.get("", response_model=GenerateMoreStatus, response_model_by_alias=True)
async def generate_more_status(
    doc_id: Optional[str] = Query(None, alias="docId"),
    settings_hash: Optional[str] = Query(None, alias="settingsHash"),
    service: GenerateMoreService = Depends(get_generate_more_service)
):
    """Report how many chunks remain for a document under one settings fingerprint"""
    try:
        return await service.get_status(doc_id, settings_hash)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/settings-hash", response_model=SettingsHashResponse, response_model_by_alias=True)
async def get_settings_hash(generation_settings: GenerationSettings):
    """Return the fingerprint the generator would use for these settings"""
    return SettingsHashResponse(settings_hash=build_settings_hash(generation_settings))
