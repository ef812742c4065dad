import os
import re
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.folder import Folder


def get_unique_name(
    db: Session, model, owner_id: str, parent_id: Optional[str], name: str
) -> str:
    """Return ``name`` or ``name (n)`` so it does not clash with a live sibling.

    Files keep their extension: ``report.pdf`` becomes ``report (1).pdf``.
    """
    if model is Folder:
        base_title, ext = name.strip(), ""
        parent_col = model.parent_id
    else:
        base_title, ext = os.path.splitext(name.strip())
        parent_col = model.folder_id

    filters = [
        model.owner_id == owner_id,
        model.deleted_at.is_(None),
        func.lower(model.name).like(f"{base_title.lower()}%"),
    ]
    if parent_id is not None:
        filters.append(parent_col == parent_id)
    else:
        filters.append(parent_col.is_(None))

    existing_names = [row[0] for row in db.query(model.name).filter(*filters).all()]

    safe_base_title = re.escape(base_title.lower())
    safe_ext = re.escape(ext.lower())
    suffix_pattern = re.compile(rf"^{safe_base_title}\s*\((?P<suffix>\d+)\){safe_ext}$")

    is_exact_match = False
    max_suffix = 0

    for existing in existing_names:
        lowered = existing.lower()
        if lowered == f"{base_title}{ext}".lower():
            is_exact_match = True
            continue

        match = suffix_pattern.match(lowered)
        if match:
            suffix = int(match.group("suffix"))
            if suffix > max_suffix:
                max_suffix = suffix

    if not is_exact_match:
        return f"{base_title}{ext}"
    return f"{base_title} ({max_suffix + 1}){ext}"
