import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError, NotFoundError
from app.models.file import File
from app.services.change_notifier import ChangeEvent, change_notifier
from app.utils.file_category import content_type_from_filename
from app.utils.file_handling import BlobStore
from app.utils.folder_utils import (
    ensure_name_available,
    get_live_file,
    get_live_folder,
    normalize_name,
)
from app.utils.get_unique_name import get_unique_name

logger = logging.getLogger(__name__)


def upload_file(
    db: Session,
    blob_store: BlobStore,
    owner_id: str,
    uploader_id: str,
    filename: str,
    data: bytes,
    folder_id: Optional[str] = None,
    mime_type: Optional[str] = None,
    description: Optional[str] = None,
) -> File:
    """Store the bytes and attach a new file record to ``folder_id``.

    A clashing name gets a ``(n)`` suffix instead of failing the upload.
    """
    name = normalize_name(filename)
    if folder_id is not None and get_live_folder(db, folder_id, owner_id) is None:
        raise NotFoundError("Folder not found")

    unique_name = get_unique_name(db, File, owner_id, folder_id, name)
    content_ref = blob_store.put(data, unique_name, owner_id)

    record = File(
        owner_id=owner_id,
        uploader_id=uploader_id,
        folder_id=folder_id,
        name=unique_name,
        content_type=content_type_from_filename(unique_name, mime_type),
        content_ref=content_ref,
        description=description,
    )
    db.add(record)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        if not blob_store.delete(content_ref):
            logger.warning(f"Orphaned blob {content_ref} after failed insert")
        raise
    db.refresh(record)

    change_notifier.publish(ChangeEvent("files", "insert", (record.id,), owner_id))
    logger.info(f"File {record.id} ({unique_name}) uploaded by {uploader_id} for {owner_id}")
    return record


def update_file(
    db: Session,
    file_id: str,
    owner_id: Optional[str] = None,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> File:
    file = get_live_file(db, file_id, owner_id)
    if not file:
        raise NotFoundError("File not found")

    if name is not None:
        new_name = normalize_name(name)
        if new_name != file.name:
            ensure_name_available(db, File, file.owner_id, file.folder_id, new_name, file.id)
            file.name = new_name
            file.content_type = content_type_from_filename(new_name, file.content_type)
    if description is not None:
        file.description = description.strip() or None

    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError("File was modified concurrently, retry")
    db.refresh(file)

    change_notifier.publish(ChangeEvent("files", "update", (file.id,), file.owner_id))
    return file


def list_files(
    db: Session,
    owner_id: Optional[str] = None,
    folder_id: Optional[str] = None,
    all_folders: bool = False,
) -> List[File]:
    """Live files of ``owner_id`` (every owner when None).

    ``folder_id`` None lists the root level unless ``all_folders`` is set.
    """
    query = db.query(File).filter(File.deleted_at.is_(None))
    if owner_id is not None:
        query = query.filter(File.owner_id == owner_id)

    if folder_id is not None:
        if get_live_folder(db, folder_id, owner_id) is None:
            raise NotFoundError("Folder not found")
        query = query.filter(File.folder_id == folder_id)
    elif not all_folders:
        query = query.filter(File.folder_id.is_(None))

    return query.order_by(File.uploaded_at.desc(), File.name).all()


def read_file_content(
    db: Session, blob_store: BlobStore, file_id: str, owner_id: Optional[str] = None
) -> Tuple[File, bytes]:
    file = get_live_file(db, file_id, owner_id)
    if not file:
        raise NotFoundError("File not found")
    return file, blob_store.get(file.content_ref)
