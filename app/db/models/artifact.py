from sqlalchemy import Boolean, Column, DateTime, ForeignKeyConstraint, String, Text, UUID
from sqlalchemy.sql import func
import uuid

from app.core.db import Base


class DocumentVersion(Base):
    __tablename__ = "document_versions"

    # Составной ключ: документ + время создания версии
    document_id = Column(String(64), primary_key=True)
    created_at = Column(DateTime(timezone=True), primary_key=True)
    title = Column(String(255), nullable=False, default="")
    kind = Column(String(16), nullable=False, default="text")
    content = Column(Text, nullable=False, default="")
    author_id = Column(String(64), nullable=True)


class Suggestion(Base):
    __tablename__ = "suggestions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["document_id", "document_created_at"],
            ["document_versions.document_id", "document_versions.created_at"],
            ondelete="CASCADE",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(String(64), nullable=False)
    document_created_at = Column(DateTime(timezone=True), nullable=False)
    original_text = Column(Text, nullable=False)
    suggested_text = Column(Text, nullable=False)
    description = Column(Text, default="")
    is_resolved = Column(Boolean, default=False, nullable=False)
    author_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
