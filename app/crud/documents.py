from sqlalchemy.ext.asyncio import AsyncSession
from app.models.documents import Document as DocumentModel
from app.models.tenders import Tender
from app.services.document_store import StoredDocument
from app.core.logging_config import logger


def to_document_rows(stored: list[StoredDocument]) -> list[DocumentModel]:
    return [
        DocumentModel(
            original_name=doc.original_name,
            storage_ref=doc.storage_ref,
            url=doc.url,
            size=doc.size,
            mime_type=doc.mime_type,
            position=position,
        )
        for position, doc in enumerate(stored)
    ]


def find_document(tender: Tender, document_id: str) -> DocumentModel | None:
    for doc in tender.documents:
        if doc.id == document_id:
            return doc
    return None


async def remove_documents(db: AsyncSession, tender: Tender, documents: list[DocumentModel]) -> None:
    """Drops document rows from the tender; ordering_list renumbers the rest."""
    for doc in documents:
        tender.documents.remove(doc)
        logger.debug(f"Removed document {doc.id} ({doc.storage_ref}) from tender {tender.tender_id}")
    db.add(tender)
    await db.commit()
