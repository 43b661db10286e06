import asyncio

from app.core.config import settings
from app.core.logging_config import logger
from app.db.database import AsyncSessionLocal
from app.services.document_store import S3DocumentStore
from app.services.orphan_sweeper import sweep_orphans


async def run_sweep(limit: int = 100) -> tuple[int, int]:
    settings.validate()
    store = S3DocumentStore.from_settings(settings)
    async with AsyncSessionLocal() as db:
        return await sweep_orphans(db, store, limit=limit)


if __name__ == "__main__":
    removed, failed = asyncio.run(run_sweep())
    logger.info(f"Removed {removed} orphaned object(s), {failed} still pending")
