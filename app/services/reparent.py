import logging
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import FileTreeError
from app.models.file import File
from app.models.folder import Folder
from app.schemas.item import ItemFailure, ItemKind, ItemRef, MoveResult
from app.services.change_notifier import ChangeEvent, change_notifier
from app.services.cycle_validator import can_reparent
from app.utils.folder_utils import live_sibling_exists

logger = logging.getLogger(__name__)


def move_items(
    db: Session,
    items: Iterable[ItemRef],
    destination_folder_id: Optional[str],
    owner_id: Optional[str] = None,
) -> MoveResult:
    """Move each item under ``destination_folder_id``.

    Partial success: every item is validated and committed on its own, and
    an item that cannot move is reported in ``failures`` without stopping the
    others.
    """
    result = MoveResult()
    seen = set()

    for item in items:
        if item in seen:
            continue
        seen.add(item)

        try:
            decision = can_reparent(db, item, destination_folder_id, owner_id)
        except FileTreeError as e:
            result.failures.append(ItemFailure(id=item.id, kind=item.kind, reason=e.message))
            continue

        if not decision.allowed:
            result.failures.append(ItemFailure(id=item.id, kind=item.kind, reason=decision.reason))
            continue
        if decision.noop:
            result.unchanged_count += 1
            continue

        target = decision.target
        model = Folder if item.kind == ItemKind.FOLDER else File
        if live_sibling_exists(db, model, target.owner_id, destination_folder_id, target.name, target.id):
            result.failures.append(
                ItemFailure(
                    id=item.id,
                    kind=item.kind,
                    reason=f"An item named {target.name} already exists in the destination",
                )
            )
            continue

        if item.kind == ItemKind.FOLDER:
            target.parent_id = destination_folder_id
        else:
            target.folder_id = destination_folder_id
        item_owner = target.owner_id

        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            result.failures.append(
                ItemFailure(id=item.id, kind=item.kind, reason="Item was modified concurrently, retry")
            )
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Move of {item.kind.value} {item.id} failed: {e}")
            result.failures.append(ItemFailure(id=item.id, kind=item.kind, reason="Database error"))
            continue

        result.moved_count += 1
        table = "folders" if item.kind == ItemKind.FOLDER else "files"
        change_notifier.publish(ChangeEvent(table, "update", (item.id,), item_owner))

    logger.info(
        f"Moved {result.moved_count} item(s) to {destination_folder_id or 'root'}, "
        f"{len(result.failures)} failure(s)"
    )
    return result
