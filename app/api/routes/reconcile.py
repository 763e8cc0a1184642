from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
import structlog

from app.core.exceptions import AppError
from app.core.dependencies import get_reconcile_service
from app.models.schemas import (
    BackfillResponse, ReconcileRequest, ReconcileResponse, ReconciliationStats
)
from app.services.reconcile_service import ReconcileService

logger = structlog.get_logger()

router = APIRouter(prefix="/reconcile-duplicates", tags=["reconciliation"])


@router.post("", response_model=ReconcileResponse, response_model_by_alias=True, response_model_exclude_none=True)
async def reconcile_duplicates(
    request: ReconcileRequest,
    service: ReconcileService = Depends(get_reconcile_service)
):
    """Collapse near-duplicate test cases, or preview what would be collapsed"""
    try:
        if request.preview:
            preview = await service.preview_project_duplicates(request.project_id, request.threshold)
            return ReconcileResponse(success=True, preview=preview)
        result = await service.reconcile_project_duplicates(request.project_id, request.threshold)
        return ReconcileResponse(success=True, result=result)
    except AppError as e:
        body = ReconcileResponse(success=False, error=e.message)
        return JSONResponse(
            status_code=e.status_code,
            content=body.model_dump(mode="json", by_alias=True, exclude_none=True)
        )


@router.get("/stats", response_model=ReconciliationStats, response_model_by_alias=True)
async def reconciliation_stats(
    project_id: Optional[str] = Query(None, alias="projectId"),
    service: ReconcileService = Depends(get_reconcile_service)
):
    """How many stored cases look like near duplicates"""
    return await service.get_reconciliation_stats(project_id)


@router.post(
    "/backfill",
    response_model=BackfillResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK
)
async def backfill_simhashes(
    project_id: Optional[str] = Query(None, alias="projectId"),
    service: ReconcileService = Depends(get_reconcile_service)
):
    """Compute SimHash fingerprints for cases stored without one"""
    updated = await service.backfill_simhashes(project_id)
    logger.info("Backfill requested", project_id=project_id, updated=updated)
    return BackfillResponse(updated=updated)
