"""Seed default roles into the database."""

from sqlalchemy.orm import Session

from cms_admin.core.permissions import Permissions, all_permission_keys
from cms_admin.models.role import Role, RolePermission

SUPER_ADMIN_ROLE = "Super Admin"


def seed_roles(db: Session) -> int:
    """Insert default roles if they don't already exist. Run after the permission sync."""
    roles_data = [
        {
            "name": SUPER_ADMIN_ROLE,
            "description": "Full system access. Cannot be modified or deleted.",
            "is_super_admin": True,
            "is_system": True,
            # never consulted for super-admin roles
            "permissions": [],
        },
        {
            "name": "Admin",
            "description": "Manage users, roles, content and settings",
            "is_system": True,
            "permissions": all_permission_keys(),
        },
        {
            "name": "Editor",
            "description": "Manage blog and job post content",
            "permissions": [
                Permissions.BLOG_VIEW, Permissions.BLOG_MANAGE,
                Permissions.JOB_POSTS_VIEW, Permissions.JOB_POSTS_MANAGE,
            ],
        },
        {
            "name": "Viewer",
            "description": "Read-only access to content",
            "permissions": [Permissions.BLOG_VIEW, Permissions.JOB_POSTS_VIEW],
        },
    ]

    created = 0
    for role_data in roles_data:
        keys = role_data.pop("permissions")
        existing = db.query(Role).filter(Role.name == role_data["name"]).first()
        if not existing:
            role = Role(**role_data)
            role.permissions = [RolePermission(permission_key=k) for k in keys]
            db.add(role)
            created += 1

    db.commit()
    print(f"✅ Seeded {created} role(s)")
    return created
