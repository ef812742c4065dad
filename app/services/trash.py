import logging
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import CorruptTreeError, FileTreeError
from app.models.file import File
from app.models.folder import Folder
from app.schemas.item import ItemFailure, ItemKind, ItemRef, RestoreResult
from app.schemas.trash import TrashItem
from app.services.path_resolver import format_path, get_breadcrumbs
from app.services.restore import restore_folder_with_contents, restore_item

logger = logging.getLogger(__name__)


def _location(db: Session, location_id: Optional[str], memo: Dict[str, Tuple[str, bool]]) -> Tuple[str, bool]:
    """Path of a former location and whether it is unavailable (trashed or gone)."""
    if location_id is None:
        return "", False
    if location_id in memo:
        return memo[location_id]

    try:
        entries = get_breadcrumbs(db, location_id, include_deleted=True)
    except CorruptTreeError as e:
        logger.warning(f"Cannot resolve path of folder {location_id}: {e}")
        entries = []

    unavailable = not entries or entries[-1].id != location_id or entries[-1].is_deleted
    memo[location_id] = (format_path(entries), unavailable)
    return memo[location_id]


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def list_trash(
    db: Session,
    owner_id: Optional[str] = None,
    name_contains: Optional[str] = None,
    kind: Optional[ItemKind] = None,
) -> List[TrashItem]:
    """Every trashed folder and file, most recently deleted first."""
    items: List[TrashItem] = []
    memo: Dict[str, Tuple[str, bool]] = {}
    pattern = _like_pattern(name_contains.strip()) if name_contains and name_contains.strip() else None

    if kind in (None, ItemKind.FOLDER):
        query = db.query(Folder).filter(Folder.deleted_at.is_not(None))
        if owner_id is not None:
            query = query.filter(Folder.owner_id == owner_id)
        if pattern:
            query = query.filter(Folder.name.ilike(pattern, escape="\\"))
        for folder in query.all():
            path, unavailable = _location(db, folder.original_parent_id, memo)
            items.append(
                TrashItem(
                    id=folder.id,
                    kind=ItemKind.FOLDER,
                    name=folder.name,
                    owner_id=folder.owner_id,
                    deleted_at=folder.deleted_at,
                    deleted_by=folder.deleted_by,
                    original_location_id=folder.original_parent_id,
                    original_location_path=path,
                    original_location_deleted=unavailable,
                )
            )

    if kind in (None, ItemKind.FILE):
        query = db.query(File).filter(File.deleted_at.is_not(None))
        if owner_id is not None:
            query = query.filter(File.owner_id == owner_id)
        if pattern:
            query = query.filter(File.name.ilike(pattern, escape="\\"))
        for file in query.all():
            path, unavailable = _location(db, file.original_folder_id, memo)
            items.append(
                TrashItem(
                    id=file.id,
                    kind=ItemKind.FILE,
                    name=file.name,
                    owner_id=file.owner_id,
                    deleted_at=file.deleted_at,
                    deleted_by=file.deleted_by,
                    original_location_id=file.original_folder_id,
                    original_location_path=path,
                    original_location_deleted=unavailable,
                    content_type=file.content_type,
                )
            )

    items.sort(key=lambda item: item.deleted_at, reverse=True)
    return items


def restore_selection(db: Session, items: List[ItemRef], owner_id: Optional[str] = None) -> RestoreResult:
    """Restore the selected trash entries one by one; folders bring their contents.

    An entry already brought back by an earlier folder in the same selection
    is skipped rather than reported.
    """
    result = RestoreResult()
    done: Set[Tuple[str, ItemKind]] = set()

    for item in items:
        if (item.id, item.kind) in done:
            continue
        try:
            if item.kind == ItemKind.FOLDER:
                restored = restore_folder_with_contents(db, item.id, owner_id)
            else:
                restored = restore_item(db, item, owner_id)
        except FileTreeError as e:
            result.failures.append(ItemFailure(id=item.id, kind=item.kind, reason=e.message))
            continue

        result.restored_count += restored.count
        done.update((folder_id, ItemKind.FOLDER) for folder_id in restored.folder_ids)
        done.update((file_id, ItemKind.FILE) for file_id in restored.file_ids)

    logger.info(f"Restored {result.restored_count} item(s) from selection, {len(result.failures)} failure(s)")
    return result
