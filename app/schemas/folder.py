from __future__ import annotations
from app.schemas.file import GetFileResponse
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class CreateFolderRequest(BaseModel):
    name: str = Field(..., description="The name of the folder")
    parent_id: Optional[str] = Field(None, description="The parent folder id")
    owner_id: Optional[str] = Field(None, description="Target student, admins only")


class UpdateFolderRequest(BaseModel):
    name: str = Field(..., description="The new name of the folder")


class GetFolderResponse(BaseModel):
    id: str = Field(..., description="The id of the folder")
    name: str = Field(..., description="The name of the folder")
    owner_id: str = Field(..., description="The student owning the folder")
    parent_id: Optional[str] = Field(None, description="The parent folder id")
    created_at: Optional[datetime] = Field(None, description="The creation time of the folder")
    updated_at: Optional[datetime] = Field(None, description="The update time of the folder")
    model_config = {"from_attributes": True}


class GetFolderChildrenReponse(BaseModel):
    folders: List[GetFolderResponse]
    files: List[GetFileResponse]

class FolderNode(GetFolderResponse):
    folders: List[FolderNode] = []
    files: List[GetFileResponse] = []


class FolderTreeResponse(BaseModel):
    folders: List[FolderNode]
    files: List[GetFileResponse] = Field(default_factory=list, description="Root-level files")


class BreadcrumbEntry(BaseModel):
    id: str
    name: str
    is_deleted: bool = False


class BreadcrumbResponse(BaseModel):
    breadcrumbs: List[BreadcrumbEntry]
    path: str = Field(..., description="Human readable path, e.g. 'A / B / C'")


FolderNode.model_rebuild()
