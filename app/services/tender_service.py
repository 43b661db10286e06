"""
Tender lifecycle: creation, updates, status changes and deletion.

The service receives the request's session and an UploadOrchestrator by
injection and raises domain errors from app.core.errors, never HTTPException.
"""
from typing import Any, Optional

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    DuplicateTenderId,
    InvalidStatus,
    NotFound,
    StorageCleanupFailure,
    StorageCleanupWarning,
    UploadFailure,
    ValidationError,
)
from app.core.logging_config import logger
from app.crud.documents import find_document, remove_documents, to_document_rows
from app.crud.orphans import record_orphans
from app.crud.tenders import delete_tender as delete_tender_row
from app.crud.tenders import get_tender_by_id, save_tender, tender_id_taken
from app.models.base import utcnow
from app.models.tenders import Tender
from app.schemas.principal import Principal
from app.schemas.tenders import TenderCreate, TenderUpdate
from app.services.attribute_validator import normalize_attributes
from app.services.authorization import Action, authorize, authorize_document_removal
from app.services.document_store import RawFile
from app.services.tender_state_machine import TenderStateMachine
from app.services.upload_orchestrator import UploadOrchestrator


def parse_fields(model: type[pydantic.BaseModel], fields: dict[str, Any]):
    try:
        return model(**fields)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "input"
        raise ValidationError(f"Invalid {field}: {first.get('msg', 'invalid value')}") from e


class TenderService:
    """Owns the tender entity: its uniqueness, ownership and document rules."""

    def __init__(self, db: AsyncSession, orchestrator: UploadOrchestrator, blocking_cleanup: bool = False) -> None:
        self.db = db
        self.orchestrator = orchestrator
        self.blocking_cleanup = blocking_cleanup

    async def get_tender(self, tender_pk: str) -> Tender:
        tender = await get_tender_by_id(self.db, tender_pk)
        if not tender:
            raise NotFound("Tender not found")
        return tender

    async def create_tender(
            self,
            principal: Principal,
            fields: dict[str, Any],
            files: list[RawFile],
            attributes: Any = None,
    ) -> Tender:
        authorize(principal, Action.CREATE)
        try:
            data = parse_fields(TenderCreate, fields)
            if await tender_id_taken(self.db, data.tender_id):
                logger.warning(f"Tender {data.tender_id} already exists")
                raise DuplicateTenderId(data.tender_id)
        except Exception:
            self.orchestrator.discard(files)
            raise

        stored = await self._upload(files)

        tender = Tender(
            tender_id=data.tender_id,
            organization=data.organization,
            description=data.description,
            due_date=data.due_date,
            price=data.price,
            status="pending",
            attributes=normalize_attributes(attributes) if principal.is_privileged and attributes is not None else [],
            submitted_by=principal.id,
            documents=to_document_rows(stored),
        )
        try:
            tender = await save_tender(self.db, tender)
        except Exception:
            logger.error(f"Failed to save tender {data.tender_id}; releasing {len(stored)} uploaded document(s)")
            await self._record(await self.orchestrator.release(stored))
            raise

        logger.info(f"Created tender {tender.tender_id} ({tender.id}) by {principal.id} with {len(tender.documents)} document(s)")
        return tender

    async def update_tender(
            self,
            principal: Principal,
            tender_pk: str,
            fields: dict[str, Any],
            files: Optional[list[RawFile]] = None,
            attributes: Any = None,
    ) -> Tender:
        files = files or []
        try:
            tender = await self.get_tender(tender_pk)
            authorize(principal, Action.UPDATE, tender)
            data = parse_fields(TenderUpdate, {k: v for k, v in fields.items() if v is not None})
            if data.tender_id is not None and data.tender_id != tender.tender_id:
                if await tender_id_taken(self.db, data.tender_id, exclude_pk=tender.id):
                    logger.warning(f"Cannot rename tender {tender.tender_id}: {data.tender_id} already exists")
                    raise DuplicateTenderId(data.tender_id)
        except Exception:
            self.orchestrator.discard(files)
            raise

        # The new batch must be stored before anything old is released.
        stored = await self._upload(files) if files else []
        replaced = list(tender.documents) if stored else []

        for field, value in data.model_dump(exclude_none=True).items():
            setattr(tender, field, value)
        if stored:
            tender.documents = to_document_rows(stored)
        if attributes is not None:
            if principal.is_privileged:
                tender.attributes = normalize_attributes(attributes)
            else:
                logger.info(f"Ignoring attributes from non-privileged principal {principal.id} on tender {tender.tender_id}")
        tender.updated_at = utcnow()

        try:
            tender = await save_tender(self.db, tender)
        except Exception:
            if stored:
                logger.error(f"Failed to update tender {tender_pk}; releasing {len(stored)} new document(s)")
                await self._record(await self.orchestrator.release(stored))
            raise

        if replaced:
            logger.info(f"Releasing {len(replaced)} replaced document(s) of tender {tender.tender_id}")
            await self._record(await self.orchestrator.release(replaced))

        logger.info(f"Updated tender {tender.tender_id} by {principal.id}")
        return tender

    async def update_status(self, principal: Principal, tender_pk: str, status: Any) -> Tender:
        authorize(principal, Action.CHANGE_STATUS)
        if not isinstance(status, str) or status not in TenderStateMachine.states:
            raise InvalidStatus("Invalid status value")
        tender = await self.get_tender(tender_pk)

        machine = TenderStateMachine(tender)
        await machine.transition_to(status)
        tender.updated_at = utcnow()
        return await save_tender(self.db, tender)

    async def delete_tender(self, principal: Principal, tender_pk: str) -> None:
        authorize(principal, Action.DELETE)
        tender = await self.get_tender(tender_pk)

        documents = list(tender.documents)
        warnings = await self.orchestrator.release(documents)
        if warnings and self.blocking_cleanup:
            failed = {w.storage_ref for w in warnings}
            await remove_documents(self.db, tender, [d for d in documents if d.storage_ref not in failed])
            raise StorageCleanupFailure("Failed to remove tender documents from storage; tender was kept", warnings)

        await delete_tender_row(self.db, tender)
        await self._record(warnings)
        logger.info(f"Deleted tender {tender.tender_id} by {principal.id}"
                    + (f" with {len(warnings)} storage cleanup warning(s)" if warnings else ""))

    async def delete_document(self, principal: Principal, tender_pk: str, document_id: str) -> None:
        tender = await self.get_tender(tender_pk)
        authorize(principal, Action.DELETE_DOCUMENT, tender)
        document = find_document(tender, document_id)
        if document is None:
            raise NotFound("Document not found")
        authorize_document_removal(principal, tender)

        warnings = await self.orchestrator.release([document])
        if warnings and self.blocking_cleanup:
            raise StorageCleanupFailure("Failed to delete document", warnings)

        tender.updated_at = utcnow()
        await remove_documents(self.db, tender, [document])
        await self._record(warnings)
        logger.info(f"Deleted document {document_id} of tender {tender.tender_id} by {principal.id}")

    async def _upload(self, files: list[RawFile]):
        try:
            return await self.orchestrator.upload_batch(files)
        except UploadFailure as e:
            logger.error(f"Upload failed: {str(e.cause)}")
            await self._record([StorageCleanupWarning(ref, e.cause) for ref in e.orphaned_refs])
            raise

    async def _record(self, warnings: list[StorageCleanupWarning]) -> None:
        if warnings:
            logger.warning(f"{len(warnings)} storage object(s) scheduled for cleanup")
            await record_orphans(self.db, warnings)
