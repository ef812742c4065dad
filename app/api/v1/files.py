import logging
import mimetypes
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.orm import Session

from app.api.v1.auth import Actor, get_current_actor, resolve_owner, resolve_scope
from app.core.database import get_db
from app.schemas.file import GetFileResponse, UpdateFileRequest
from app.schemas.item import CascadeResult
from app.services.file_service import list_files, read_file_content, update_file, upload_file
from app.services.soft_delete import soft_delete_file
from app.utils.file_handling import BlobStore, get_blob_store

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/upload", response_model=GetFileResponse, status_code=201)
async def upload(
    file: UploadFile = File(...),
    folder_id: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    owner_id: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    actor: Actor = Depends(get_current_actor),
):
    content = await file.read()
    record = upload_file(
        db,
        blob_store,
        owner_id=resolve_owner(actor, owner_id),
        uploader_id=actor.id,
        filename=file.filename or "",
        data=content,
        folder_id=folder_id or None,
        mime_type=file.content_type,
        description=description,
    )
    return GetFileResponse.from_model(record)


@router.get("", response_model=List[GetFileResponse])
async def list_file(
    folder_id: Optional[str] = Query(None),
    owner_id: Optional[str] = Query(None),
    all_folders: bool = Query(False, description="Ignore folder_id and list every live file"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    files = list_files(
        db,
        owner_id=resolve_scope(actor, owner_id),
        folder_id=None if all_folders else folder_id,
        all_folders=all_folders,
    )
    return [GetFileResponse.from_model(file) for file in files]


@router.get("/{file_id}/download")
async def download(
    file_id: str,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    actor: Actor = Depends(get_current_actor),
):
    file, data = read_file_content(db, blob_store, file_id, resolve_scope(actor))
    media_type = mimetypes.guess_type(file.name)[0] or "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file.name)}"},
    )


@router.patch("/{file_id}", response_model=GetFileResponse)
async def update(
    file_id: str,
    body: UpdateFileRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    record = update_file(
        db, file_id, resolve_scope(actor), name=body.name, description=body.description
    )
    return GetFileResponse.from_model(record)


@router.delete("/{file_id}", response_model=CascadeResult)
async def delete(
    file_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return soft_delete_file(db, file_id, actor.id, resolve_scope(actor))
