import uuid
from sqlalchemy import Column, String, Text, Numeric, Date, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from app.models.base import Base, utcnow

TENDER_STATUSES = ("pending", "approved", "rejected")


class Tender(Base):
    __tablename__ = "tenders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tender_id = Column(String, nullable=False, unique=True, index=True)
    organization = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    price = Column(Numeric(15, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default="pending", index=True)
    attributes = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)  # [{"key": ..., "value": ...}]
    submitted_by = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    documents = relationship(
        "Document",
        back_populates="tender",
        order_by="Document.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )


from app.models.documents import Document  # noqa: E402,F401  registers the Document mapper
