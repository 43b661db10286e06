from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from app.core.errors import DuplicateTenderId
from app.models.tenders import Tender
from app.core.logging_config import logger

async def get_tender_by_id(db: AsyncSession, tender_pk: str) -> Tender | None:
    """Loads a tender by its internal id together with its documents."""
    result = await db.execute(
        select(Tender)
        .options(selectinload(Tender.documents))
        .filter(Tender.id == tender_pk)
        .execution_options(populate_existing=True)
    )
    tender = result.scalars().first()
    if not tender:
        logger.warning(f"Tender {tender_pk} not found")
    return tender

async def tender_id_taken(db: AsyncSession, tender_id: str, exclude_pk: str | None = None) -> bool:
    query = select(Tender.id).filter(Tender.tender_id == tender_id)
    if exclude_pk:
        query = query.filter(Tender.id != exclude_pk)
    result = await db.execute(query.limit(1))
    return result.scalar() is not None

async def save_tender(db: AsyncSession, tender: Tender) -> Tender:
    """
    Commits a new or modified tender.

    The UNIQUE constraint on tender_id is the source of truth for uniqueness,
    so a violation here means a concurrent request won the race.
    """
    # Rollback expires the instance, so read what the error needs up front
    tender_id = tender.tender_id
    db.add(tender)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if tender_id_violation(e):
            logger.warning(f"Tender id {tender_id} already exists (constraint)")
            raise DuplicateTenderId(tender_id) from e
        raise
    return await get_tender_by_id(db, tender.id)

async def delete_tender(db: AsyncSession, tender: Tender) -> None:
    await db.delete(tender)
    await db.commit()

def tender_id_violation(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "unique" in message and "tender_id" in message
