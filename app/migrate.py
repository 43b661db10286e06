import asyncio

import asyncpg
from alembic import command
from alembic.config import Config

from app.core.config import settings
from app.core.logging_config import logger

DB_RETRIES = 5
DB_RETRY_DELAY = 2


class DatabaseUnavailable(Exception):
    pass


async def wait_for_db(retries: int = DB_RETRIES, delay: float = DB_RETRY_DELAY):
    db_url = settings.DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://")
    for i in range(retries):
        try:
            conn = await asyncpg.connect(db_url)
            await conn.close()
            logger.info("Database is ready!")
            return True
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Waiting for database... Attempt {i + 1}/{retries}: {e}")
            await asyncio.sleep(delay)
    logger.error("Failed to connect to database after retries")
    raise DatabaseUnavailable("Database connection failed")


def apply_migrations():
    try:
        asyncio.run(wait_for_db())
        logger.info("Starting migrations...")
        alembic_cfg = Config("alembic.ini")
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
        logger.info(f"Using database at {settings.POSTGRES_HOST}:{settings.POSTGRES_PORT}")
        command.upgrade(alembic_cfg, "head", sql=False)
        logger.info("Migrations applied!")
    except Exception as e:
        logger.error(f"Failed to apply migrations: {e}")
        raise


if __name__ == "__main__":
    apply_migrations()
