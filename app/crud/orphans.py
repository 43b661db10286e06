from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.core.errors import StorageCleanupWarning
from app.db.database import AsyncSessionLocal
from app.models.orphaned_files import OrphanedFile

async def record_orphans(db: AsyncSession, warnings: list[StorageCleanupWarning]) -> None:
    """Schedules storage objects whose removal failed for a later sweep."""
    if not warnings:
        return
    for warning in warnings:
        existing = await db.execute(select(OrphanedFile).filter(OrphanedFile.storage_ref == warning.storage_ref))
        if existing.scalars().first():
            continue
        db.add(OrphanedFile(storage_ref=warning.storage_ref, reason=str(warning.cause) or type(warning.cause).__name__))
    await db.commit()

async def get_orphans(db: AsyncSession, limit: int = 100) -> list[OrphanedFile]:
    result = await db.execute(
        select(OrphanedFile).order_by(OrphanedFile.attempts, OrphanedFile.created_at).limit(limit)
    )
    return result.scalars().all()

async def record_orphans_detached(warnings: list[StorageCleanupWarning]) -> None:
    """Records orphans from a session of its own, for cleanups that outlive the request."""
    async with AsyncSessionLocal() as db:
        await record_orphans(db, warnings)
