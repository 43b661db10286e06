"""
FastAPI dependencies: the authenticated principal and the service graph.

The document store is built once at startup and kept on app.state; services
and the orchestrator are created per request.
"""
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.crud.orphans import record_orphans_detached
from app.db.database import get_db
from app.schemas.principal import Principal, normalize_role
from app.services.document_store import DocumentStore
from app.services.tender_service import TenderService
from app.services.upload_orchestrator import UploadOrchestrator

security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Principal:
    """Verifies the bearer token and returns its subject and role."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed token: missing sub",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Principal(id=str(subject), role=normalize_role(payload.get("role")))


def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.document_store


def get_orchestrator(store: Annotated[DocumentStore, Depends(get_document_store)]) -> UploadOrchestrator:
    return UploadOrchestrator(
        store,
        allowed_mime_types=settings.ALLOWED_MIME_TYPES,
        max_file_size=settings.MAX_FILE_SIZE,
        timeout=settings.UPLOAD_TIMEOUT_SECONDS,
        orphan_sink=record_orphans_detached,
    )


def get_tender_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    orchestrator: Annotated[UploadOrchestrator, Depends(get_orchestrator)],
) -> TenderService:
    return TenderService(db, orchestrator, blocking_cleanup=settings.BLOCKING_STORAGE_CLEANUP)


PrincipalDep = Annotated[Principal, Depends(get_current_principal)]
TenderServiceDep = Annotated[TenderService, Depends(get_tender_service)]
