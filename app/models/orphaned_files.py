from sqlalchemy import Column, Integer, String, Text, DateTime
from app.models.base import Base, utcnow

class OrphanedFile(Base):
    """Storage object whose removal failed; retried by the orphan sweeper."""
    __tablename__ = "orphaned_files"

    id = Column(Integer, primary_key=True, index=True)
    storage_ref = Column(String, nullable=False, unique=True)
    reason = Column(Text, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
