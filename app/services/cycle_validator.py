from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.orm import Session

from app.models.file import File
from app.models.folder import Folder
from app.schemas.item import ItemKind, ItemRef
from app.services.path_resolver import ancestor_ids
from app.utils.folder_utils import get_live_file, get_live_folder


@dataclass
class ReparentDecision:
    allowed: bool
    noop: bool = False
    reason: Optional[str] = None
    target: Optional[Union[Folder, File]] = None

    @classmethod
    def reject(cls, reason: str, target=None) -> "ReparentDecision":
        return cls(allowed=False, reason=reason, target=target)


def load_live_item(db: Session, item: ItemRef, owner_id: Optional[str] = None):
    if item.kind == ItemKind.FOLDER:
        return get_live_folder(db, item.id, owner_id)
    return get_live_file(db, item.id, owner_id)


def current_parent_id(target: Union[Folder, File]) -> Optional[str]:
    if isinstance(target, Folder):
        return target.parent_id
    return target.folder_id


def can_reparent(
    db: Session,
    item: ItemRef,
    new_parent_id: Optional[str],
    owner_id: Optional[str] = None,
) -> ReparentDecision:
    """Decide whether ``item`` may move under ``new_parent_id`` (None = root).

    Pure check, nothing is written. Folders are rejected when the destination
    is the folder itself or one of its descendants.
    """
    target = load_live_item(db, item, owner_id)
    if target is None:
        return ReparentDecision.reject(f"{item.kind.value.capitalize()} not found")

    if current_parent_id(target) == new_parent_id:
        return ReparentDecision(allowed=True, noop=True, target=target)

    if item.kind == ItemKind.FOLDER and new_parent_id == target.id:
        return ReparentDecision.reject("Cannot move a folder into itself", target)

    if new_parent_id is not None:
        destination = get_live_folder(db, new_parent_id)
        if destination is None:
            return ReparentDecision.reject("Destination folder not found", target)
        if destination.owner_id != target.owner_id:
            return ReparentDecision.reject("Destination folder belongs to another student", target)

        if item.kind == ItemKind.FOLDER and target.id in ancestor_ids(db, new_parent_id):
            return ReparentDecision.reject(
                "Cannot move a folder into one of its subfolders", target
            )

    return ReparentDecision(allowed=True, target=target)
