import asyncio
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import PrincipalDep, TenderServiceDep
from app.core.config import settings
from app.core.logging_config import logger
from app.db.database import get_db
from app.schemas.tenders import MessageResponse, StatusUpdate, TenderDetail, TenderListResponse
from app.services.document_store import RawFile
from app.services.tender_query import TenderQuery, search_tenders

router = APIRouter()


SPOOL_CHUNK_SIZE = 1024 * 1024


def spool_one(file: UploadFile, limit: int) -> RawFile:
    """Copies one upload to disk, stopping once it is known to exceed `limit` bytes."""
    suffix = Path(file.filename).suffix
    size = 0
    with tempfile.NamedTemporaryFile(dir=settings.UPLOAD_TMP_DIR, suffix=suffix, delete=False) as buffer:
        try:
            while True:
                chunk = file.file.read(SPOOL_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > limit:
                    logger.warning(f"Upload {file.filename} exceeds {limit} bytes; stopped spooling")
                    break
                buffer.write(chunk)
        except OSError:
            os.unlink(buffer.name)
            raise
    return RawFile(
        name=file.filename,
        mime_type=file.content_type or "application/octet-stream",
        size=size,
        temp_path=Path(buffer.name),
    )


async def spool_uploads(files: Optional[List[UploadFile]]) -> list[RawFile]:
    """Spools uploads to temporary files off the event loop; the store discards them after the upload attempt."""
    raw_files = []
    if not files:
        return raw_files
    loop = asyncio.get_running_loop()
    os.makedirs(settings.UPLOAD_TMP_DIR, exist_ok=True)
    try:
        for file in files:
            if not file.filename:
                continue
            raw_files.append(await loop.run_in_executor(None, spool_one, file, settings.MAX_FILE_SIZE))
    except OSError:
        for raw in raw_files:
            raw.discard()
        raise
    return raw_files


def tender_fields(tender_id, organization, description, due_date, price) -> dict:
    return {
        "tender_id": tender_id,
        "organization": organization,
        "description": description,
        "due_date": due_date,
        "price": price,
    }


@router.get(
    "",
    response_model=TenderListResponse,
    summary="List tenders",
    description="Filters by status, organization and free text; sorted by due date ascending.",
)
async def list_tenders(
        principal: PrincipalDep,
        status: Optional[str] = Query(None, description="Exact status (pending, approved, rejected)"),
        organization: Optional[str] = Query(None, description="Case-insensitive organization substring"),
        search: Optional[str] = Query(None, description="Substring of tenderId, organization or description"),
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(10, ge=1, description="Page size"),
        db: AsyncSession = Depends(get_db)
):
    query = TenderQuery(status=status, organization=organization, search=search, page=page, limit=limit)
    tenders, pagination = await search_tenders(db, query)
    return TenderListResponse(
        tenders=[TenderDetail.model_validate(t) for t in tenders],
        pagination=pagination,
    )


@router.get("/{tender_pk}", response_model=TenderDetail, summary="Get a tender")
async def get_tender(tender_pk: str, principal: PrincipalDep, service: TenderServiceDep):
    logger.info(f"Fetching details for tender {tender_pk}")
    tender = await service.get_tender(tender_pk)
    return TenderDetail.model_validate(tender)


@router.post(
    "",
    response_model=TenderDetail,
    status_code=201,
    summary="Create a tender",
    responses={
        400: {"description": "Missing or invalid fields, or no acceptable document"},
        409: {"description": "A tender with this tenderId already exists"},
        500: {"description": "Documents could not be stored"},
    },
)
async def create_tender(
        principal: PrincipalDep,
        service: TenderServiceDep,
        tender_id: Optional[str] = Form(None, alias="tenderId"),
        organization: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        due_date: Optional[str] = Form(None, alias="dueDate"),
        price: Optional[str] = Form(None),
        attributes: Optional[str] = Form(None),
        documents: Optional[List[UploadFile]] = File(None),
):
    logger.info(f"Received tender {tender_id} from {principal.id}")
    files = await spool_uploads(documents)
    tender = await service.create_tender(
        principal,
        tender_fields(tender_id, organization, description, due_date, price),
        files,
        attributes,
    )
    return TenderDetail.model_validate(tender)


@router.put(
    "/{tender_pk}",
    response_model=TenderDetail,
    summary="Update a tender",
    description="Owner or admin. Omitted fields keep their values; new documents replace the old set.",
)
async def update_tender(
        tender_pk: str,
        principal: PrincipalDep,
        service: TenderServiceDep,
        tender_id: Optional[str] = Form(None, alias="tenderId"),
        organization: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        due_date: Optional[str] = Form(None, alias="dueDate"),
        price: Optional[str] = Form(None),
        attributes: Optional[str] = Form(None),
        documents: Optional[List[UploadFile]] = File(None),
):
    files = await spool_uploads(documents)
    tender = await service.update_tender(
        principal,
        tender_pk,
        tender_fields(tender_id, organization, description, due_date, price),
        files,
        attributes,
    )
    return TenderDetail.model_validate(tender)


@router.patch("/{tender_pk}/status", response_model=TenderDetail, summary="Change tender status (admin)")
async def update_tender_status(
        tender_pk: str,
        body: StatusUpdate,
        principal: PrincipalDep,
        service: TenderServiceDep,
):
    tender = await service.update_status(principal, tender_pk, body.status)
    return TenderDetail.model_validate(tender)


@router.delete("/{tender_pk}", response_model=MessageResponse, summary="Delete a tender (admin)")
async def delete_tender(tender_pk: str, principal: PrincipalDep, service: TenderServiceDep):
    await service.delete_tender(principal, tender_pk)
    return MessageResponse(message="Tender removed")


@router.delete(
    "/{tender_pk}/documents/{document_id}",
    response_model=MessageResponse,
    summary="Delete one document of a tender",
)
async def delete_document(tender_pk: str, document_id: str, principal: PrincipalDep, service: TenderServiceDep):
    await service.delete_document(principal, tender_pk, document_id)
    return MessageResponse(message="Document deleted successfully")
