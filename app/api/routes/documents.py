from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from app.core.exceptions import ChunksNotFoundError
from app.core.dependencies import get_generate_more_service
from app.models.schemas import Chunk, ChunkDocumentRequest, ChunkDocumentResponse, DocumentCoverage
from app.services.generate_more_service import GenerateMoreService

logger = structlog.get_logger()

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("/{doc_id}/chunks", response_model=ChunkDocumentResponse, response_model_by_alias=True)
async def chunk_document(
    doc_id: str,
    request: ChunkDocumentRequest,
    service: GenerateMoreService = Depends(get_generate_more_service)
):
    """Split a requirement document into overlapping chunks and store them"""
    try:
        response = await service.chunk_document(doc_id, request.text, request.max_chars, request.overlap)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.info("Document chunked", doc_id=doc_id, total_chunks=response.total_chunks)
    return response


@router.get("/{doc_id}/chunks", response_model=List[Chunk], response_model_by_alias=True)
async def get_chunks(
    doc_id: str,
    service: GenerateMoreService = Depends(get_generate_more_service)
):
    """Get the stored chunks of a document in order"""
    return await service.get_chunks(doc_id)


@router.get("/{doc_id}/coverage", response_model=DocumentCoverage, response_model_by_alias=True)
async def get_document_coverage(
    doc_id: str,
    service: GenerateMoreService = Depends(get_generate_more_service)
):
    """Per-chunk generation yield for a document"""
    try:
        return await service.get_document_coverage(doc_id)
    except ChunksNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
