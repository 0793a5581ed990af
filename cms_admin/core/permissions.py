"""Permission catalog and navigation menu.

The catalog is the single source of truth for capability keys. It is fixed at
build time and mirrored into the ``permissions`` table by
``cms-admin permissions sync``; groups only drive grouped display.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class PermissionDefinition:
    key: str
    label: str
    description: str
    group: str


class Permissions:
    """Permission keys, so call sites never spell them by hand."""

    USERS_VIEW = "users.view"
    USERS_CREATE = "users.create"
    USERS_EDIT = "users.edit"
    USERS_DELETE = "users.delete"

    ROLES_VIEW = "roles.view"
    ROLES_CREATE = "roles.create"
    ROLES_EDIT = "roles.edit"
    ROLES_DELETE = "roles.delete"

    BLOG_VIEW = "blog.view"
    BLOG_MANAGE = "blog.manage"

    JOB_POSTS_VIEW = "job_posts.view"
    JOB_POSTS_MANAGE = "job_posts.manage"

    AUDIT_VIEW = "audit.view"

    SETTINGS_MANAGE = "settings.manage"


PERMISSION_CATALOG: Tuple[PermissionDefinition, ...] = (
    PermissionDefinition(Permissions.USERS_VIEW, "View Users", "View user list and details", "Users"),
    PermissionDefinition(Permissions.USERS_CREATE, "Create Users", "Invite and create new users", "Users"),
    PermissionDefinition(Permissions.USERS_EDIT, "Edit Users", "Edit user information", "Users"),
    PermissionDefinition(Permissions.USERS_DELETE, "Delete Users", "Delete or deactivate users", "Users"),
    PermissionDefinition(Permissions.ROLES_VIEW, "View Roles", "View roles and permissions", "Roles"),
    PermissionDefinition(Permissions.ROLES_CREATE, "Create Roles", "Create new roles", "Roles"),
    PermissionDefinition(Permissions.ROLES_EDIT, "Edit Roles", "Edit role information and permissions", "Roles"),
    PermissionDefinition(Permissions.ROLES_DELETE, "Delete Roles", "Delete roles", "Roles"),
    PermissionDefinition(
        Permissions.BLOG_VIEW, "View Blog", "View blog posts, categories, and contributors", "Blog"
    ),
    PermissionDefinition(
        Permissions.BLOG_MANAGE, "Manage Blog", "Full blog management (create, edit, delete, publish)", "Blog"
    ),
    PermissionDefinition(
        Permissions.JOB_POSTS_VIEW, "View Job Posts", "View job posts and job categories", "Job Posts"
    ),
    PermissionDefinition(
        Permissions.JOB_POSTS_MANAGE, "Manage Job Posts",
        "Full job post management (create, edit, delete, publish)", "Job Posts",
    ),
    PermissionDefinition(
        Permissions.AUDIT_VIEW, "View Audit Logs",
        "CAUTION: audit logs reveal sensitive information about all system activity. "
        "Grant this permission carefully.",
        "Audit",
    ),
    PermissionDefinition(
        Permissions.SETTINGS_MANAGE, "Manage Settings", "Manage system settings such as allowed domains", "Settings"
    ),
)

_CATALOG_BY_KEY: Dict[str, PermissionDefinition] = {p.key: p for p in PERMISSION_CATALOG}


def all_permission_keys() -> List[str]:
    return [p.key for p in PERMISSION_CATALOG]


def is_known_permission(key: str) -> bool:
    return isinstance(key, str) and key in _CATALOG_BY_KEY


def get_permission(key: str) -> Optional[PermissionDefinition]:
    return _CATALOG_BY_KEY.get(key)


def group_permissions(
    catalog: Iterable[PermissionDefinition] = PERMISSION_CATALOG,
) -> Dict[str, List[PermissionDefinition]]:
    """Group definitions by ``group``, keeping catalog order."""
    groups: Dict[str, List[PermissionDefinition]] = {}
    for definition in catalog:
        groups.setdefault(definition.group, []).append(definition)
    return groups


# ---- Navigation ----

@dataclass(frozen=True)
class MenuItem:
    id: str
    label: str
    path: Optional[str] = None
    icon: Optional[str] = None
    permission_key: Optional[str] = None  # None = always visible
    children: Tuple["MenuItem", ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "path": self.path,
            "icon": self.icon,
            "permission_key": self.permission_key,
            "children": [child.to_dict() for child in self.children],
        }


MENU_CONFIG: Tuple[MenuItem, ...] = (
    MenuItem("dashboard", "Dashboard", "/admin", "LayoutDashboard"),
    MenuItem("users", "Users", "/admin/users", "Users", Permissions.USERS_VIEW),
    MenuItem("roles", "Roles & Permissions", "/admin/roles", "Shield", Permissions.ROLES_VIEW),
    MenuItem(
        "blog", "Blog", None, "BookOpen", Permissions.BLOG_VIEW,
        children=(
            MenuItem("blog-posts", "Posts", "/admin/blog/posts", "FileText", Permissions.BLOG_VIEW),
            MenuItem("blog-categories", "Categories", "/admin/blog/categories", "FolderOpen", Permissions.BLOG_VIEW),
            MenuItem("blog-contributors", "Contributors", "/admin/blog/contributors", "Users", Permissions.BLOG_VIEW),
        ),
    ),
    MenuItem(
        "job-posts", "Job Posts", None, "Briefcase", Permissions.JOB_POSTS_VIEW,
        children=(
            MenuItem("job-posts-posts", "Posts", "/admin/job-posts/posts", "FileText", Permissions.JOB_POSTS_VIEW),
            MenuItem(
                "job-posts-categories", "Categories", "/admin/job-posts/categories", "FolderOpen",
                Permissions.JOB_POSTS_VIEW,
            ),
        ),
    ),
    MenuItem("audit", "Audit Logs", "/admin/audit-logs", "FileText", Permissions.AUDIT_VIEW),
    MenuItem(
        "settings", "Settings", None, "Settings", Permissions.SETTINGS_MANAGE,
        children=(
            MenuItem(
                "allowed-domains", "Allowed Domains", "/admin/settings/allowed-domains", "Globe",
                Permissions.SETTINGS_MANAGE,
            ),
        ),
    ),
)


def filter_menu(items: Iterable[MenuItem], granted: Iterable[str]) -> List[MenuItem]:
    """Drop items the actor cannot see, and parents left without children."""
    granted_keys = set(granted)
    visible: List[MenuItem] = []
    for item in items:
        if item.permission_key and item.permission_key not in granted_keys:
            continue
        if item.children:
            children = filter_menu(item.children, granted_keys)
            if not children:
                continue
            item = MenuItem(item.id, item.label, item.path, item.icon, item.permission_key, tuple(children))
        visible.append(item)
    return visible


def find_menu_item(path: str, items: Iterable[MenuItem] = MENU_CONFIG) -> Optional[MenuItem]:
    """Menu entry whose ``path`` is exactly ``path``, searching children too."""
    for item in items:
        if item.path == path:
            return item
        found = find_menu_item(path, item.children)
        if found is not None:
            return found
    return None
