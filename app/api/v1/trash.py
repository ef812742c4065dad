import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.auth import Actor, get_current_actor, require_admin, resolve_owner, resolve_scope
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.schemas.item import (
    CascadeResult,
    ItemKind,
    ItemRef,
    PurgeResult,
    RestoreResult,
    RestoreSelectionRequest,
)
from app.schemas.trash import ConfirmPurgeRequest, TrashItem
from app.services.restore import restore_folder_with_contents, restore_item
from app.services.retention import empty_trash, purge_expired, purge_item
from app.services.trash import list_trash, restore_selection
from app.utils.file_handling import BlobStore, get_blob_store

router = APIRouter()
logger = logging.getLogger(__name__)


def check_confirmation(body: ConfirmPurgeRequest) -> None:
    if body.confirmation.strip() != settings.empty_trash_confirmation:
        raise ValidationError(
            f"Type '{settings.empty_trash_confirmation}' to confirm permanent deletion"
        )


@router.get("", response_model=List[TrashItem])
async def get_trash(
    name_contains: Optional[str] = Query(None),
    kind: Optional[ItemKind] = Query(None),
    owner_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return list_trash(db, resolve_scope(actor, owner_id), name_contains=name_contains, kind=kind)


@router.post("/restore", response_model=RestoreResult)
async def restore_selected(
    body: RestoreSelectionRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return restore_selection(db, body.items, resolve_scope(actor))


@router.post("/folders/{folder_id}/restore", response_model=CascadeResult)
async def restore_folder(
    folder_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return restore_folder_with_contents(db, folder_id, resolve_scope(actor))


@router.post("/{kind}/{item_id}/restore", response_model=CascadeResult)
async def restore_single(
    kind: ItemKind,
    item_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return restore_item(db, ItemRef(id=item_id, kind=kind), resolve_scope(actor))


@router.delete("/{kind}/{item_id}", response_model=PurgeResult)
async def purge_single(
    kind: ItemKind,
    item_id: str,
    body: ConfirmPurgeRequest,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    actor: Actor = Depends(get_current_actor),
):
    check_confirmation(body)
    report = purge_item(db, ItemRef(id=item_id, kind=kind), resolve_scope(actor), blob_store)
    return PurgeResult(count=report.count)


@router.post("/empty", response_model=PurgeResult)
async def empty(
    body: ConfirmPurgeRequest,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    actor: Actor = Depends(get_current_actor),
):
    check_confirmation(body)
    owner_id = resolve_owner(actor, body.owner_id)
    logger.info(f"{actor.id} is emptying the trash of {owner_id}")
    report = empty_trash(db, owner_id, blob_store)
    return PurgeResult(count=report.count)


@router.post("/cleanup", response_model=PurgeResult)
async def cleanup(
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    actor: Actor = Depends(get_current_actor),
):
    """Purge everything older than the retention window, across all owners."""
    require_admin(actor)
    report = purge_expired(db, blob_store=blob_store)
    return PurgeResult(count=report.count)
