from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from app.utils.file_category import get_file_category


class GetFileResponse(BaseModel):
    id: str = Field(..., description="Unique identifier of the file")
    owner_id: str = Field(..., description="Student whose tree holds the file")
    uploader_id: str = Field(..., description="Actor who uploaded the file")
    folder_id: Optional[str] = Field(None, description="ID of the folder containing the file")
    name: str = Field(..., description="Display name or filename")
    content_type: str = Field(..., description="Extension or MIME label, e.g. pdf")
    category: str = Field("other", description="Preview category derived from content_type")
    description: Optional[str] = Field(None, description="Optional description")
    uploaded_at: Optional[datetime] = Field(None, description="Timestamp when the file was uploaded")
    updated_at: Optional[datetime] = Field(None, description="Timestamp when the file was last updated")

    @classmethod
    def from_model(cls, file) -> "GetFileResponse":
        return cls(
            id=file.id,
            owner_id=file.owner_id,
            uploader_id=file.uploader_id,
            folder_id=file.folder_id,
            name=file.name,
            content_type=file.content_type,
            category=get_file_category(file.content_type),
            description=file.description,
            uploaded_at=file.uploaded_at,
            updated_at=file.updated_at,
        )


class UpdateFileRequest(BaseModel):
    name: Optional[str] = Field(None, description="New file name")
    description: Optional[str] = Field(None, description="New description")
