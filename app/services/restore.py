"""Bring trashed items back into the live tree.

An item goes back to the folder it was deleted from. When that folder is
itself in the trash or gone, the item lands at the root instead, so a
restored item is never hidden under a deleted ancestor.
"""
import logging
from typing import List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.models.file import File
from app.models.folder import Folder
from app.schemas.item import CascadeResult, ItemKind, ItemRef
from app.services.cascade import run_cascade
from app.services.change_notifier import ChangeEvent, change_notifier
from app.utils.folder_utils import get_live_folder
from app.utils.get_unique_name import get_unique_name

logger = logging.getLogger(__name__)


def _load_trashed(db: Session, model, item_id: str, owner_id: Optional[str]):
    query = db.query(model).filter(model.id == item_id)
    if owner_id is not None:
        query = query.filter(model.owner_id == owner_id)
    row = query.first()
    label = "Folder" if model is Folder else "File"
    if row is None:
        raise NotFoundError(f"{label} not found")
    if row.deleted_at is None:
        raise NotFoundError(f"{label} is not in the trash")
    return row


def _fallback_destination(db: Session, original_id: Optional[str], owner_id: str) -> Optional[str]:
    """``original_id`` when it is a live folder of the same owner, else root."""
    if original_id is None:
        return None
    destination = get_live_folder(db, original_id, owner_id)
    return destination.id if destination is not None else None


def _clear_folder(folder: Folder, parent_id: Optional[str]) -> None:
    folder.parent_id = parent_id
    folder.deleted_at = None
    folder.deleted_by = None
    folder.original_parent_id = None


def _clear_file(file: File, folder_id: Optional[str]) -> None:
    file.folder_id = folder_id
    file.deleted_at = None
    file.deleted_by = None
    file.original_folder_id = None


def _place_outside(db: Session, item, model, destination: Optional[str]) -> None:
    """Rename ``item`` if a live sibling at ``destination`` already uses its name."""
    unique = get_unique_name(db, model, item.owner_id, destination, item.name)
    if unique != item.name:
        logger.info(f"Restored {model.__tablename__[:-1]} {item.id} renamed to {unique}")
        item.name = unique


def restore_item(db: Session, item: ItemRef, owner_id: Optional[str] = None) -> CascadeResult:
    """Restore a single folder or file, without its trashed contents."""
    model = Folder if item.kind == ItemKind.FOLDER else File

    def apply() -> CascadeResult:
        row = _load_trashed(db, model, item.id, owner_id)
        if model is Folder:
            destination = _fallback_destination(db, row.original_parent_id, row.owner_id)
            _place_outside(db, row, model, destination)
            _clear_folder(row, destination)
            result = CascadeResult(folder_ids=[row.id])
        else:
            destination = _fallback_destination(db, row.original_folder_id, row.owner_id)
            _place_outside(db, row, model, destination)
            _clear_file(row, destination)
            result = CascadeResult(file_ids=[row.id])
        db.flush()
        return result

    result = run_cascade(db, f"Restore of {item.kind.value} {item.id}", apply)
    owner = db.query(model.owner_id).filter(model.id == item.id).scalar()
    change_notifier.publish(ChangeEvent(model.__tablename__, "update", (item.id,), owner))
    logger.info(f"Restored {item.kind.value} {item.id}")
    return result


def collect_trashed_subtree(db: Session, root: Folder) -> Tuple[List[Folder], List[File]]:
    """Trashed descendants deleted together with ``root`` or after it."""
    folders = [root]
    seen: Set[str] = {root.id}
    frontier = [root.id]

    while frontier:
        children = (
            db.query(Folder)
            .filter(
                Folder.parent_id.in_(frontier),
                Folder.deleted_at.is_not(None),
                Folder.deleted_at >= root.deleted_at,
            )
            .all()
        )
        frontier = []
        for child in children:
            if child.id in seen:
                continue
            seen.add(child.id)
            folders.append(child)
            frontier.append(child.id)

    files = (
        db.query(File)
        .filter(
            File.folder_id.in_(list(seen)),
            File.deleted_at.is_not(None),
            File.deleted_at >= root.deleted_at,
        )
        .all()
    )
    return folders, files


def restore_folder_with_contents(
    db: Session, folder_id: str, owner_id: Optional[str] = None
) -> CascadeResult:
    """Restore a trashed folder together with everything trashed inside it.

    Items whose recorded location is restored in the same call go back
    there; anything else follows the fallback-to-root rule.
    """

    def apply() -> CascadeResult:
        root = _load_trashed(db, Folder, folder_id, owner_id)
        folders, files = collect_trashed_subtree(db, root)
        restored = {f.id for f in folders}

        # Resolve every destination before any row becomes live again.
        placements = []
        for folder in folders:
            if folder.original_parent_id in restored and folder.id != root.id:
                placements.append((folder, folder.original_parent_id, True))
            else:
                destination = _fallback_destination(db, folder.original_parent_id, folder.owner_id)
                placements.append((folder, destination, False))
        file_placements = []
        for file in files:
            if file.original_folder_id in restored:
                file_placements.append((file, file.original_folder_id, True))
            else:
                destination = _fallback_destination(db, file.original_folder_id, file.owner_id)
                file_placements.append((file, destination, False))

        for folder, destination, inside in placements:
            if not inside:
                _place_outside(db, folder, Folder, destination)
            _clear_folder(folder, destination)
            db.flush()
        for file, destination, inside in file_placements:
            if not inside:
                _place_outside(db, file, File, destination)
            _clear_file(file, destination)
            if not inside:
                db.flush()
        db.flush()

        return CascadeResult(
            folder_ids=[f.id for f in folders],
            file_ids=[f.id for f in files],
        )

    result = run_cascade(db, f"Restore of folder {folder_id}", apply)
    owner = db.query(Folder.owner_id).filter(Folder.id == folder_id).scalar()
    change_notifier.publish(ChangeEvent("folders", "update", tuple(result.folder_ids), owner))
    change_notifier.publish(ChangeEvent("files", "update", tuple(result.file_ids), owner))
    logger.info(
        f"Restored folder {folder_id} with {len(result.folder_ids) - 1} subfolder(s) "
        f"and {len(result.file_ids)} file(s)"
    )
    return result
