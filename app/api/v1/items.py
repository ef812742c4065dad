from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.auth import Actor, get_current_actor, resolve_scope
from app.core.database import get_db
from app.schemas.item import MoveRequest, MoveResult
from app.services.reparent import move_items

router = APIRouter()


@router.post("/move", response_model=MoveResult)
async def move(
    body: MoveRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Move folders and files under one destination. Per-item failures come
    back in ``failures``; the rest still move."""
    return move_items(db, body.items, body.destination_folder_id, resolve_scope(actor))
