import math
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import asc, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.core.errors import ValidationError
from app.core.logging_config import logger
from app.models.tenders import Tender
from app.schemas.tenders import Pagination


@dataclass
class TenderQuery:
    status: Optional[str] = None
    organization: Optional[str] = None
    search: Optional[str] = None
    page: int = 1
    limit: int = 10


def _contains(value: str) -> str:
    """LIKE pattern matching `value` literally anywhere in the column."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_filters(query: TenderQuery) -> list:
    filters = []
    if query.status:
        filters.append(Tender.status == query.status)
    if query.organization:
        filters.append(Tender.organization.ilike(_contains(query.organization), escape="\\"))
    if query.search:
        pattern = _contains(query.search)
        filters.append(or_(
            Tender.tender_id.ilike(pattern, escape="\\"),
            Tender.organization.ilike(pattern, escape="\\"),
            Tender.description.ilike(pattern, escape="\\"),
        ))
    return filters


async def search_tenders(db: AsyncSession, query: TenderQuery) -> tuple[list[Tender], Pagination]:
    if query.page < 1 or query.limit < 1:
        raise ValidationError("page and limit must be positive integers")

    logger.info(
        f"Fetching tenders list: page={query.page}, limit={query.limit}, "
        f"filters={query.status, query.organization, query.search}")

    filters = build_filters(query)

    total_query = select(func.count()).select_from(Tender).where(*filters)
    total_result = await db.execute(total_query)
    total = total_result.scalar()

    page_query = (
        select(Tender)
        .options(selectinload(Tender.documents))
        .where(*filters)
        .order_by(asc(Tender.due_date), asc(Tender.created_at), asc(Tender.id))
        .offset((query.page - 1) * query.limit)
        .limit(query.limit)
    )
    result = await db.execute(page_query)
    tenders = result.scalars().all()

    pages = math.ceil(total / query.limit) if total else 0
    logger.info(f"Returning {len(tenders)} tenders, total={total}")
    return tenders, Pagination(page=query.page, limit=query.limit, total=total, pages=pages)
