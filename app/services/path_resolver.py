"""Ancestor walks over the folder tree: breadcrumbs and full paths.

Every walk is bounded by ``settings.max_tree_depth`` so a corrupted parent
chain fails with ``CorruptTreeError`` instead of looping.
"""
import logging
import threading
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import CorruptTreeError, NotFoundError
from app.models.folder import Folder
from app.schemas.folder import BreadcrumbEntry
from app.services.change_notifier import ChangeEvent, change_notifier

logger = logging.getLogger(__name__)

PATH_SEPARATOR = " / "


def walk_ancestors(
    db: Session, folder_id: Optional[str], max_depth: Optional[int] = None
) -> List[Folder]:
    """Return the chain from the root down to ``folder_id``, deleted folders included.

    A missing start folder yields an empty chain; a dangling parent reference
    ends the chain at the last folder that still exists.
    """
    if folder_id is None:
        return []

    limit = max_depth if max_depth is not None else settings.max_tree_depth
    chain: List[Folder] = []
    seen = set()
    current_id = folder_id

    while current_id is not None:
        if len(chain) >= limit:
            logger.error(f"Ancestor walk from {folder_id} exceeded {limit} levels")
            raise CorruptTreeError(f"Folder tree deeper than {limit} levels at {folder_id}")
        if current_id in seen:
            logger.error(f"Parent cycle detected while walking from {folder_id}")
            raise CorruptTreeError(f"Parent cycle detected at folder {current_id}")
        seen.add(current_id)

        folder = db.query(Folder).filter(Folder.id == current_id).first()
        if folder is None:
            break
        chain.append(folder)
        current_id = folder.parent_id

    chain.reverse()
    return chain


def ancestor_ids(db: Session, folder_id: Optional[str]) -> List[str]:
    return [folder.id for folder in walk_ancestors(db, folder_id)]


class BreadcrumbCache:
    """Live-mode breadcrumbs keyed by folder id.

    Any change to a folder drops every cached chain that passes through it.
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[str, List[BreadcrumbEntry]]] = {}
        self._lock = threading.Lock()

    def get(self, folder_id: str) -> Optional[Tuple[str, List[BreadcrumbEntry]]]:
        with self._lock:
            return self._entries.get(folder_id)

    def put(self, folder_id: str, owner_id: str, entries: List[BreadcrumbEntry]) -> None:
        with self._lock:
            self._entries[folder_id] = (owner_id, list(entries))

    def invalidate(self, folder_ids) -> int:
        changed = set(folder_ids)
        with self._lock:
            stale = [
                key
                for key, (_, entries) in self._entries.items()
                if any(entry.id in changed for entry in entries)
            ]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def on_change(self, event: ChangeEvent) -> None:
        if event.table == "folders":
            self.invalidate(event.ids)


breadcrumb_cache = BreadcrumbCache()
change_notifier.subscribe(breadcrumb_cache.on_change)


def get_breadcrumbs(
    db: Session,
    folder_id: Optional[str],
    include_deleted: bool = False,
    owner_id: Optional[str] = None,
) -> List[BreadcrumbEntry]:
    """Breadcrumbs root-first.

    Live mode requires ``folder_id`` to be a live folder (of ``owner_id`` when
    given) and exposes only live ancestors. With ``include_deleted`` the whole
    chain is returned with deleted folders flagged, which is what trash
    listings need to show where an item used to live.
    """
    if folder_id is None:
        return []

    if include_deleted:
        return [
            BreadcrumbEntry(id=f.id, name=f.name, is_deleted=f.deleted_at is not None)
            for f in walk_ancestors(db, folder_id)
        ]

    cached = breadcrumb_cache.get(folder_id)
    if cached is not None:
        cached_owner, entries = cached
        if owner_id is None or cached_owner == owner_id:
            return list(entries)

    chain = walk_ancestors(db, folder_id)
    if not chain or chain[-1].id != folder_id or chain[-1].deleted_at is not None:
        raise NotFoundError("Folder not found")
    target = chain[-1]
    if owner_id is not None and target.owner_id != owner_id:
        raise NotFoundError("Folder not found")

    entries = [
        BreadcrumbEntry(id=f.id, name=f.name, is_deleted=False)
        for f in chain
        if f.deleted_at is None
    ]
    breadcrumb_cache.put(folder_id, target.owner_id, entries)
    return entries


def format_path(entries: List[BreadcrumbEntry]) -> str:
    return PATH_SEPARATOR.join(entry.name for entry in entries)


def get_full_path(db: Session, folder_id: Optional[str], include_deleted: bool = False) -> str:
    return format_path(get_breadcrumbs(db, folder_id, include_deleted=include_deleted))
