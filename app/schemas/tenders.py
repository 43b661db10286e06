from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import date, datetime


class Attribute(BaseModel):
    key: str
    value: str


class DocumentOut(BaseModel):
    id: str
    original_name: str
    storage_ref: str
    url: str
    size: int
    mime_type: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class Submitter(BaseModel):
    id: str


class TenderDetail(BaseModel):
    id: str
    tender_id: str
    organization: str
    description: str
    due_date: date
    price: float
    status: str
    documents: List[DocumentOut] = []
    attributes: List[Attribute] = []
    submitted_by: Submitter
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    @field_validator("submitted_by", mode="before")
    @classmethod
    def wrap_submitter(cls, value):
        if isinstance(value, str):
            return {"id": value}
        return value


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TenderListResponse(BaseModel):
    tenders: List[TenderDetail]
    pagination: Pagination


class StatusUpdate(BaseModel):
    status: str


class MessageResponse(BaseModel):
    message: str


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _date_part(value):
    # Browsers often send an ISO timestamp for date inputs
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


class TenderCreate(BaseModel):
    tender_id: str
    organization: str
    description: str
    due_date: date
    price: float = Field(0, ge=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("tender_id", "organization", "description", mode="before")
    @classmethod
    def require_text(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("must not be empty")
        return value.strip() if isinstance(value, str) else value

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, value):
        return _date_part(value)

    @field_validator("price", mode="before")
    @classmethod
    def default_price(cls, value):
        value = _blank_to_none(value)
        return 0 if value is None else value


class TenderUpdate(BaseModel):
    """Partial update: a field left as None keeps its stored value."""
    tender_id: Optional[str] = None
    organization: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    price: Optional[float] = Field(None, ge=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("tender_id", "organization", "description", mode="before")
    @classmethod
    def reject_blank_text(cls, value):
        if isinstance(value, str) and not value.strip():
            raise ValueError("must not be empty")
        return value.strip() if isinstance(value, str) else value

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, value):
        return _date_part(_blank_to_none(value))

    @field_validator("price", mode="before")
    @classmethod
    def blank_price(cls, value):
        return _blank_to_none(value)
