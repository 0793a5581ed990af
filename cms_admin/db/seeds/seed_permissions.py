"""Mirror the code permission catalog into the ``permissions`` table."""

from typing import Dict

from sqlalchemy.orm import Session

from cms_admin.core.permissions import PERMISSION_CATALOG
from cms_admin.models.role import Permission, RolePermission


def sync_permissions(db: Session) -> Dict[str, int]:
    """Insert new keys, refresh labels, and drop keys no longer in the catalog.

    Grants of a dropped key are removed with it.
    """
    catalog = {p.key: p for p in PERMISSION_CATALOG}
    existing = {p.key: p for p in db.query(Permission).all()}
    counts = {"added": 0, "updated": 0, "removed": 0}

    stale = [key for key in existing if key not in catalog]
    if stale:
        db.query(RolePermission).filter(
            RolePermission.permission_key.in_(stale)
        ).delete(synchronize_session=False)
        for key in stale:
            db.delete(existing[key])
        counts["removed"] = len(stale)

    for key, definition in catalog.items():
        row = existing.get(key)
        if row is None:
            db.add(Permission(
                key=key,
                label=definition.label,
                description=definition.description,
                group=definition.group,
            ))
            counts["added"] += 1
        elif (row.label, row.description, row.group) != (
            definition.label, definition.description, definition.group
        ):
            row.label = definition.label
            row.description = definition.description
            row.group = definition.group
            counts["updated"] += 1

    db.commit()
    print(
        f"✅ Permissions synced: {counts['added']} added, "
        f"{counts['updated']} updated, {counts['removed']} removed"
    )
    return counts
