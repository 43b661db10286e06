from sqlalchemy.ext.asyncio import AsyncSession
from app.core.errors import StorageFailure
from app.core.logging_config import logger
from app.crud.orphans import get_orphans
from app.services.document_store import DocumentStore


async def sweep_orphans(db: AsyncSession, store: DocumentStore, limit: int = 100) -> tuple[int, int]:
    """
    Retries removal of storage objects that earlier cleanups could not delete.

    Returns (removed, still_failing). Rows are deleted once the object is gone;
    failures only bump the attempt counter so the next sweep picks them up.
    """
    orphans = await get_orphans(db, limit=limit)
    logger.info(f"Sweeping {len(orphans)} orphaned storage object(s)")
    removed, failed = 0, 0
    for orphan in orphans:
        try:
            await store.remove(orphan.storage_ref)
        except StorageFailure as e:
            orphan.attempts += 1
            orphan.reason = str(e.__cause__ or e)
            failed += 1
            logger.warning(f"Orphan {orphan.storage_ref} still not removable (attempt {orphan.attempts}): {orphan.reason}")
            continue
        await db.delete(orphan)
        removed += 1
    await db.commit()
    logger.info(f"Orphan sweep finished: removed={removed}, failed={failed}")
    return removed, failed
