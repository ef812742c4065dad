"""Permanent removal of trashed items.

Purges are conditional deletes (``deleted_at IS NOT NULL``): an item that was
restored in the meantime survives, and purging the same id twice is a no-op.
Blob removal happens after the metadata commit and never fails the purge.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import SessionLocal
from app.core.exceptions import BlobCleanupWarning, CascadeFailure, NotFoundError
from app.models.file import File
from app.models.folder import Folder
from app.schemas.item import ItemKind, ItemRef
from app.services.change_notifier import ChangeEvent, change_notifier
from app.utils.file_handling import BlobStore, get_blob_store

logger = logging.getLogger(__name__)


@dataclass
class PurgeReport:
    folder_count: int = 0
    file_count: int = 0
    orphaned_refs: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return self.folder_count + self.file_count


def _purge(
    db: Session,
    files: List[Tuple[str, str, str]],
    folders: List[Tuple[str, str]],
    blob_store: Optional[BlobStore],
) -> PurgeReport:
    """Delete the given trashed ``(id, owner_id, content_ref)`` files and
    ``(id, owner_id)`` folders in one transaction, then clean up blobs."""
    report = PurgeReport()
    purged_files: List[Tuple[str, str, str]] = []
    purged_folders: List[Tuple[str, str]] = []

    try:
        for file_id, owner_id, content_ref in files:
            deleted = (
                db.query(File)
                .filter(File.id == file_id, File.deleted_at.is_not(None))
                .delete(synchronize_session=False)
            )
            if deleted:
                purged_files.append((file_id, owner_id, content_ref))

        if folders:
            # The snapshot may be stale: a folder restored since then is live
            # again and must keep its children.
            rows = (
                db.query(Folder.id, Folder.owner_id)
                .filter(
                    Folder.id.in_([folder_id for folder_id, _ in folders]),
                    Folder.deleted_at.is_not(None),
                )
                .with_for_update()
                .all()
            )
            purged_folders = [(row[0], row[1]) for row in rows]

        folder_ids = [folder_id for folder_id, _ in purged_folders]
        if folder_ids:
            # Trashed survivors pointing at a purged folder are detached; their
            # original_* still names it, so a later restore falls back to root.
            db.query(Folder).filter(
                Folder.parent_id.in_(folder_ids),
                Folder.id.not_in(folder_ids),
                Folder.deleted_at.is_not(None),
            ).update({Folder.parent_id: None}, synchronize_session=False)
            db.query(File).filter(
                File.folder_id.in_(folder_ids), File.deleted_at.is_not(None)
            ).update({File.folder_id: None}, synchronize_session=False)
            report.folder_count = (
                db.query(Folder)
                .filter(Folder.id.in_(folder_ids), Folder.deleted_at.is_not(None))
                .delete(synchronize_session=False)
            )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Purge failed and was rolled back: {e}")
        raise CascadeFailure("Permanent delete failed, nothing was removed") from e

    db.expire_all()
    report.file_count = len(purged_files)

    changes: Dict[Tuple[str, str], List[str]] = defaultdict(list)
    for file_id, owner_id, _ in purged_files:
        changes[(owner_id, "files")].append(file_id)
    for folder_id, owner_id in purged_folders:
        changes[(owner_id, "folders")].append(folder_id)
    for (owner_id, table), ids in changes.items():
        change_notifier.publish(ChangeEvent(table, "delete", tuple(ids), owner_id))

    if purged_files:
        store = blob_store or get_blob_store()
        for file_id, _, content_ref in purged_files:
            if not _delete_blob(store, content_ref):
                report.orphaned_refs.append(content_ref)
                logger.warning(
                    f"{BlobCleanupWarning.__name__}: blob {content_ref} of purged file "
                    f"{file_id} could not be removed"
                )
    return report


def _delete_blob(store: BlobStore, content_ref: str) -> bool:
    try:
        return store.delete(content_ref)
    except Exception as e:
        logger.warning(f"Blob store raised while removing {content_ref}: {e}")
        return False


def _trashed_files(db: Session, *filters) -> List[Tuple[str, str, str]]:
    rows = (
        db.query(File.id, File.owner_id, File.content_ref)
        .filter(File.deleted_at.is_not(None), *filters)
        .all()
    )
    return [(row[0], row[1], row[2]) for row in rows]


def _trashed_folders(db: Session, *filters) -> List[Tuple[str, str]]:
    rows = db.query(Folder.id, Folder.owner_id).filter(Folder.deleted_at.is_not(None), *filters).all()
    return [(row[0], row[1]) for row in rows]


def empty_trash(
    db: Session, owner_id: Optional[str] = None, blob_store: Optional[BlobStore] = None
) -> PurgeReport:
    """Purge everything in the trash of ``owner_id`` (all owners when None).

    Irreversible. Callers gate this behind an explicit confirmation.
    """
    owner_filters = []
    if owner_id is not None:
        owner_filters = [File.owner_id == owner_id]
    files = _trashed_files(db, *owner_filters)

    folder_filters = []
    if owner_id is not None:
        folder_filters = [Folder.owner_id == owner_id]
    folders = _trashed_folders(db, *folder_filters)

    report = _purge(db, files, folders, blob_store)
    logger.info(
        f"Emptied trash for {owner_id or 'all owners'}: "
        f"{report.folder_count} folder(s), {report.file_count} file(s)"
    )
    return report


def purge_expired(
    db: Session,
    now: Optional[datetime] = None,
    retention_days: Optional[int] = None,
    blob_store: Optional[BlobStore] = None,
) -> PurgeReport:
    """Purge trashed items older than the retention window."""
    now = now or datetime.now(timezone.utc)
    days = retention_days if retention_days is not None else settings.trash_retention_days
    cutoff = now - timedelta(days=days)

    files = _trashed_files(db, File.deleted_at < cutoff)
    folders = _trashed_folders(db, Folder.deleted_at < cutoff)
    if not files and not folders:
        return PurgeReport()

    report = _purge(db, files, folders, blob_store)
    logger.info(f"Purged {report.count} trashed item(s) older than {days} day(s)")
    return report


def _trashed_descendants(db: Session, root_id: str) -> List[Tuple[str, str]]:
    result: List[Tuple[str, str]] = []
    seen = {root_id}
    frontier = [root_id]
    while frontier:
        rows = (
            db.query(Folder.id, Folder.owner_id)
            .filter(Folder.parent_id.in_(frontier), Folder.deleted_at.is_not(None))
            .all()
        )
        frontier = []
        for folder_id, owner_id in rows:
            if folder_id in seen:
                continue
            seen.add(folder_id)
            result.append((folder_id, owner_id))
            frontier.append(folder_id)
    return result


def purge_item(
    db: Session,
    item: ItemRef,
    owner_id: Optional[str] = None,
    blob_store: Optional[BlobStore] = None,
) -> PurgeReport:
    """Permanently delete one trashed item. A folder takes its trashed subtree with it."""
    model = Folder if item.kind == ItemKind.FOLDER else File
    query = db.query(model).filter(model.id == item.id, model.deleted_at.is_not(None))
    if owner_id is not None:
        query = query.filter(model.owner_id == owner_id)
    row = query.first()
    if row is None:
        raise NotFoundError(f"{item.kind.value.capitalize()} not found in the trash")

    if item.kind == ItemKind.FILE:
        report = _purge(db, [(row.id, row.owner_id, row.content_ref)], [], blob_store)
    else:
        folders = [(row.id, row.owner_id)] + _trashed_descendants(db, row.id)
        files = _trashed_files(db, File.folder_id.in_([f[0] for f in folders]))
        report = _purge(db, files, folders, blob_store)

    logger.info(f"Permanently deleted {item.kind.value} {item.id} ({report.count} item(s))")
    return report


class RetentionSweeper:
    """Runs ``purge_expired`` on a fixed interval in a background thread."""

    JOB_ID = "purge-expired-trash"

    def __init__(self, session_factory=SessionLocal, blob_store_factory=get_blob_store, interval_minutes=None):
        self.session_factory = session_factory
        self.blob_store_factory = blob_store_factory
        self.interval_minutes = interval_minutes or settings.retention_sweep_interval_minutes
        self.scheduler = BackgroundScheduler(timezone="UTC")

    def start(self) -> None:
        self.scheduler.add_job(
            self.run_once,
            IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(f"Retention sweeper started, every {self.interval_minutes} minute(s)")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Retention sweeper stopped")

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            report = purge_expired(db, blob_store=self.blob_store_factory())
            return report.count
        except Exception as e:
            logger.exception(f"Retention sweep failed, will retry on next tick: {e}")
            return 0
        finally:
            db.close()
