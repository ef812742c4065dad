from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.auth import Actor, get_current_actor, resolve_owner, resolve_scope
from app.core.database import get_db
from app.schemas.file import GetFileResponse
from app.schemas.folder import (
    BreadcrumbResponse,
    CreateFolderRequest,
    FolderTreeResponse,
    GetFolderChildrenReponse,
    GetFolderResponse,
    UpdateFolderRequest,
)
from app.schemas.item import CascadeResult
from app.services.folder_service import (
    create_folder,
    get_folder_tree,
    list_folder_contents,
    rename_folder,
)
from app.services.path_resolver import format_path, get_breadcrumbs
from app.services.soft_delete import soft_delete_folder_with_contents

router = APIRouter()


@router.post("", response_model=GetFolderResponse, status_code=201)
async def create(
    body: CreateFolderRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    owner_id = resolve_owner(actor, body.owner_id)
    return create_folder(db, owner_id, body.name, body.parent_id)


# Get DIRECT children of a folder (root level when parent_id is omitted)
@router.get("", response_model=GetFolderChildrenReponse)
async def get_folder_children(
    parent_id: Optional[str] = Query(None),
    owner_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    folders, files = list_folder_contents(db, resolve_owner(actor, owner_id), parent_id)
    return {
        "folders": folders,
        "files": [GetFileResponse.from_model(file) for file in files],
    }


@router.get("/tree", response_model=FolderTreeResponse)
async def get_tree(
    owner_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return get_folder_tree(db, resolve_owner(actor, owner_id))


@router.get("/{folder_id}/breadcrumbs", response_model=BreadcrumbResponse)
async def breadcrumbs(
    folder_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    entries = get_breadcrumbs(db, folder_id, owner_id=resolve_scope(actor))
    return {"breadcrumbs": entries, "path": format_path(entries)}


# change folder name; moving goes through /items/move
@router.patch("/{folder_id}", response_model=GetFolderResponse)
async def update_folder(
    folder_id: str,
    body: UpdateFolderRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return rename_folder(db, folder_id, body.name, resolve_scope(actor))


# Soft delete folder together with everything inside it
@router.delete("/{folder_id}", response_model=CascadeResult)
async def delete_folder(
    folder_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return soft_delete_folder_with_contents(db, folder_id, actor.id, resolve_scope(actor))
