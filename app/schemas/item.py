from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, computed_field


class ItemKind(str, Enum):
    FOLDER = "folder"
    FILE = "file"


class ItemRef(BaseModel):
    """A selected entry of the tree: either a folder or a file, never a bare id."""

    id: str = Field(..., description="Id of the folder or file")
    kind: ItemKind = Field(..., description="Discriminant: folder or file")

    model_config = {"frozen": True}


class ItemFailure(BaseModel):
    id: str
    kind: ItemKind
    reason: str


class MoveRequest(BaseModel):
    items: List[ItemRef] = Field(..., min_length=1, description="Items to move")
    destination_folder_id: Optional[str] = Field(
        None, description="Target folder id, null for the root level"
    )


class MoveResult(BaseModel):
    moved_count: int = 0
    unchanged_count: int = 0
    failures: List[ItemFailure] = []


class RestoreSelectionRequest(BaseModel):
    items: List[ItemRef] = Field(..., min_length=1)


class RestoreResult(BaseModel):
    restored_count: int = 0
    failures: List[ItemFailure] = []


class CascadeResult(BaseModel):
    folder_ids: List[str] = []
    file_ids: List[str] = []

    @computed_field
    @property
    def count(self) -> int:
        return len(self.folder_ids) + len(self.file_ids)


class PurgeResult(BaseModel):
    count: int = Field(..., description="Number of folders and files permanently removed")
