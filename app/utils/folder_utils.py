import unicodedata
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.models.file import File
from app.models.folder import Folder


def normalize_name(name: Optional[str]) -> str:
    """Trim and NFC-normalise a folder or file name, rejecting empty ones."""
    if name is None:
        raise ValidationError("Name is required")
    cleaned = unicodedata.normalize("NFC", name).strip()
    if not cleaned:
        raise ValidationError("Name is required")
    if len(cleaned) > settings.max_name_length:
        raise ValidationError(
            f"Name must be at most {settings.max_name_length} characters"
        )
    if "/" in cleaned:
        raise ValidationError("Name must not contain '/'")
    return cleaned


def _parent_column(model):
    return model.parent_id if model is Folder else model.folder_id


def live_sibling_exists(
    db: Session,
    model,
    owner_id: str,
    parent_id: Optional[str],
    name: str,
    exclude_id: Optional[str] = None,
) -> bool:
    """Case-insensitive name clash among live siblings of the same kind."""
    parent_col = _parent_column(model)
    filters = [
        model.owner_id == owner_id,
        model.deleted_at.is_(None),
        func.lower(model.name) == name.lower(),
    ]
    if parent_id is not None:
        filters.append(parent_col == parent_id)
    else:
        filters.append(parent_col.is_(None))
    if exclude_id is not None:
        filters.append(model.id != exclude_id)

    return db.query(model.id).filter(*filters).first() is not None


def ensure_name_available(
    db: Session,
    model,
    owner_id: str,
    parent_id: Optional[str],
    name: str,
    exclude_id: Optional[str] = None,
) -> None:
    if live_sibling_exists(db, model, owner_id, parent_id, name, exclude_id):
        label = "Folder" if model is Folder else "File"
        raise ValidationError(f"{label} name {name} already exists")


def get_live_folder(db: Session, folder_id: str, owner_id: Optional[str] = None) -> Optional[Folder]:
    query = db.query(Folder).filter(Folder.id == folder_id, Folder.deleted_at.is_(None))
    if owner_id is not None:
        query = query.filter(Folder.owner_id == owner_id)
    return query.first()


def get_live_file(db: Session, file_id: str, owner_id: Optional[str] = None) -> Optional[File]:
    query = db.query(File).filter(File.id == file_id, File.deleted_at.is_(None))
    if owner_id is not None:
        query = query.filter(File.owner_id == owner_id)
    return query.first()
