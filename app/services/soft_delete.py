import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import AlreadyDeletedError, CorruptTreeError, NotFoundError
from app.models.file import File
from app.models.folder import Folder
from app.schemas.item import CascadeResult
from app.services.cascade import SubtreeChanged, run_cascade
from app.services.change_notifier import ChangeEvent, change_notifier

logger = logging.getLogger(__name__)


def collect_live_subtree(db: Session, root: Folder) -> Tuple[List[Folder], List[File]]:
    """The live folder ``root``, every live descendant folder and the live
    files directly inside any of them."""
    folders = [root]
    seen = {root.id}
    frontier = [root.id]
    depth = 0

    while frontier:
        depth += 1
        if depth > settings.max_tree_depth:
            raise CorruptTreeError(f"Folder tree deeper than {settings.max_tree_depth} levels under {root.id}")
        children = (
            db.query(Folder)
            .filter(Folder.parent_id.in_(frontier), Folder.deleted_at.is_(None))
            .all()
        )
        frontier = []
        for child in children:
            if child.id in seen:
                raise CorruptTreeError(f"Parent cycle detected at folder {child.id}")
            seen.add(child.id)
            folders.append(child)
            frontier.append(child.id)

    files = (
        db.query(File)
        .filter(File.folder_id.in_(list(seen)), File.deleted_at.is_(None))
        .all()
    )
    return folders, files


def _live_children_remaining(db: Session, folder_ids: List[str]) -> bool:
    folder_left = (
        db.query(Folder.id)
        .filter(Folder.parent_id.in_(folder_ids), Folder.deleted_at.is_(None))
        .first()
    )
    if folder_left is not None:
        return True
    file_left = (
        db.query(File.id)
        .filter(File.folder_id.in_(folder_ids), File.deleted_at.is_(None))
        .first()
    )
    return file_left is not None


def stamp_folder(folder: Folder, actor_id: str, now: datetime) -> None:
    folder.original_parent_id = folder.parent_id
    folder.deleted_at = now
    folder.deleted_by = actor_id


def stamp_file(file: File, actor_id: str, now: datetime) -> None:
    file.original_folder_id = file.folder_id
    file.deleted_at = now
    file.deleted_by = actor_id


def soft_delete_folder_with_contents(
    db: Session, folder_id: str, actor_id: str, owner_id: Optional[str] = None
) -> CascadeResult:
    """Move a folder and its whole live subtree to the trash in one transaction."""

    def apply() -> CascadeResult:
        query = db.query(Folder).filter(Folder.id == folder_id)
        if owner_id is not None:
            query = query.filter(Folder.owner_id == owner_id)
        folder = query.first()
        if folder is None:
            raise NotFoundError("Folder not found")
        if folder.deleted_at is not None:
            raise AlreadyDeletedError("Folder is already in the trash")

        folders, files = collect_live_subtree(db, folder)

        # Each item records its own container, captured before any stamp.
        now = datetime.now(timezone.utc)
        for item in folders:
            stamp_folder(item, actor_id, now)
        for item in files:
            stamp_file(item, actor_id, now)
        db.flush()

        folder_ids = [f.id for f in folders]
        if _live_children_remaining(db, folder_ids):
            raise SubtreeChanged(f"new live content appeared under folder {folder_id}")

        return CascadeResult(
            folder_ids=folder_ids,
            file_ids=[f.id for f in files],
        )

    result = run_cascade(db, f"Soft delete of folder {folder_id}", apply)
    owner = _owner_of(db, Folder, folder_id)

    change_notifier.publish(ChangeEvent("folders", "update", tuple(result.folder_ids), owner))
    change_notifier.publish(ChangeEvent("files", "update", tuple(result.file_ids), owner))
    logger.info(
        f"Folder {folder_id} moved to trash by {actor_id}: "
        f"{len(result.folder_ids)} folder(s), {len(result.file_ids)} file(s)"
    )
    return result


def soft_delete_file(
    db: Session, file_id: str, actor_id: str, owner_id: Optional[str] = None
) -> CascadeResult:
    def apply() -> CascadeResult:
        query = db.query(File).filter(File.id == file_id)
        if owner_id is not None:
            query = query.filter(File.owner_id == owner_id)
        file = query.first()
        if file is None:
            raise NotFoundError("File not found")
        if file.deleted_at is not None:
            raise AlreadyDeletedError("File is already in the trash")

        stamp_file(file, actor_id, datetime.now(timezone.utc))
        db.flush()
        return CascadeResult(file_ids=[file.id])

    result = run_cascade(db, f"Soft delete of file {file_id}", apply)
    change_notifier.publish(
        ChangeEvent("files", "update", (file_id,), _owner_of(db, File, file_id))
    )
    logger.info(f"File {file_id} moved to trash by {actor_id}")
    return result


def _owner_of(db: Session, model, item_id: str) -> Optional[str]:
    row = db.query(model.owner_id).filter(model.id == item_id).first()
    return row[0] if row else None
