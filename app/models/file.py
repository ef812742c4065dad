import uuid

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Index
from sqlalchemy.sql import func
from app.core.database import Base


class File(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(64), nullable=False, index=True)
    uploader_id = Column(String(64), nullable=False)
    folder_id = Column(String(36), ForeignKey("folders.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    content_type = Column(String(64), nullable=False)
    content_ref = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    deleted_by = Column(String(64), nullable=True)
    original_folder_id = Column(String(36), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_files_owner_folder", "owner_id", "folder_id"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
