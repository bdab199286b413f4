from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String

from evaluator.db.session import Base


class DocumentKind(str, Enum):
    """Kinds of uploaded candidate documents"""
    CV = "cv"
    PROJECT_REPORT = "project_report"


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(32), nullable=False, index=True)
    original_filename = Column(String(255), nullable=False)
    storage_key = Column(String(512), nullable=False, unique=True)
    content_type = Column(String(100), nullable=False, default="application/pdf")
    size_bytes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<Document(id={self.id}, kind='{self.kind}', key='{self.storage_key}')>"
