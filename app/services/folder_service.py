import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.file import File
from app.models.folder import Folder
from app.schemas.file import GetFileResponse
from app.schemas.folder import FolderNode, GetFolderResponse
from app.services.change_notifier import ChangeEvent, change_notifier
from app.utils.folder_utils import ensure_name_available, get_live_folder, normalize_name

logger = logging.getLogger(__name__)


def create_folder(
    db: Session, owner_id: str, name: str, parent_id: Optional[str] = None
) -> Folder:
    folder_name = normalize_name(name)

    if parent_id is not None and get_live_folder(db, parent_id, owner_id) is None:
        raise NotFoundError("Parent folder not found")

    ensure_name_available(db, Folder, owner_id, parent_id, folder_name)

    new_folder = Folder(owner_id=owner_id, name=folder_name, parent_id=parent_id)
    db.add(new_folder)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Folder insert rejected by the database: {e}")
        raise ValidationError("Folder could not be created")
    db.refresh(new_folder)

    change_notifier.publish(ChangeEvent("folders", "insert", (new_folder.id,), owner_id))
    logger.info(f"Folder {new_folder.id} created for {owner_id}")
    return new_folder


def rename_folder(
    db: Session, folder_id: str, name: str, owner_id: Optional[str] = None
) -> Folder:
    folder = get_live_folder(db, folder_id, owner_id)
    if not folder:
        raise NotFoundError("Folder not found")

    folder_name = normalize_name(name)
    if folder_name == folder.name:
        return folder

    ensure_name_available(db, Folder, folder.owner_id, folder.parent_id, folder_name, folder.id)

    folder.name = folder_name
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError("Folder was modified concurrently, retry")
    db.refresh(folder)

    change_notifier.publish(ChangeEvent("folders", "update", (folder.id,), folder.owner_id))
    return folder


def list_folder_contents(
    db: Session, owner_id: str, parent_id: Optional[str] = None
) -> Tuple[List[Folder], List[File]]:
    """Live direct children of ``parent_id`` (root level when None).

    An unknown or trashed ``parent_id`` is an error; the listing never widens
    to the owner's whole tree.
    """
    if parent_id is not None and get_live_folder(db, parent_id, owner_id) is None:
        raise NotFoundError("Folder not found")

    folder_query = db.query(Folder).filter(
        Folder.owner_id == owner_id, Folder.deleted_at.is_(None)
    )
    file_query = db.query(File).filter(File.owner_id == owner_id, File.deleted_at.is_(None))
    if parent_id is None:
        folder_query = folder_query.filter(Folder.parent_id.is_(None))
        file_query = file_query.filter(File.folder_id.is_(None))
    else:
        folder_query = folder_query.filter(Folder.parent_id == parent_id)
        file_query = file_query.filter(File.folder_id == parent_id)

    return folder_query.order_by(Folder.name).all(), file_query.order_by(File.name).all()


def get_folder_tree(db: Session, owner_id: str) -> Dict[str, List]:
    """The owner's live tree as nested nodes, plus the root-level files."""
    folders = (
        db.query(Folder)
        .filter(Folder.owner_id == owner_id, Folder.deleted_at.is_(None))
        .order_by(Folder.name)
        .all()
    )
    files = (
        db.query(File)
        .filter(File.owner_id == owner_id, File.deleted_at.is_(None))
        .order_by(File.name)
        .all()
    )

    nodes = {
        folder.id: FolderNode(**GetFolderResponse.model_validate(folder).model_dump())
        for folder in folders
    }
    roots: List[FolderNode] = []
    for folder in folders:
        node = nodes[folder.id]
        parent = nodes.get(folder.parent_id) if folder.parent_id else None
        if parent is not None:
            parent.folders.append(node)
        elif folder.parent_id is None:
            roots.append(node)
        else:
            logger.warning(f"Live folder {folder.id} points at unavailable parent {folder.parent_id}")

    root_files = []
    for file in files:
        entry = GetFileResponse.from_model(file)
        if file.folder_id is None:
            root_files.append(entry)
        elif file.folder_id in nodes:
            nodes[file.folder_id].files.append(entry)

    return {"folders": roots, "files": root_files}
