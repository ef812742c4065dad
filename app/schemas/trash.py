from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.schemas.item import ItemKind


class TrashItem(BaseModel):
    id: str = Field(..., description="Id of the trashed folder or file")
    kind: ItemKind
    name: str
    owner_id: str
    deleted_at: datetime
    deleted_by: Optional[str] = Field(None, description="Actor who moved the item to the trash")
    original_location_id: Optional[str] = Field(
        None, description="Folder the item lived in when deleted, null for root"
    )
    original_location_path: str = Field(
        "", description="Path of the original location, empty for root"
    )
    original_location_deleted: bool = Field(
        False, description="Whether the original location is itself in the trash or gone"
    )
    content_type: Optional[str] = None


class ConfirmPurgeRequest(BaseModel):
    confirmation: str = Field(..., description="Typed confirmation phrase")
    owner_id: Optional[str] = Field(None, description="Scope, admins only")
