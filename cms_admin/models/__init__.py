"""Models package: import all models so metadata sees every table."""

from cms_admin.models.role import Role, Permission, RolePermission
from cms_admin.models.user import User, UserStatus
from cms_admin.models.invitation import Invitation
from cms_admin.models.audit_log import AuditLog
from cms_admin.models.allowed_domain import AllowedDomain
from cms_admin.models.blog import BlogCategory, BlogContributor, BlogPost, PostStatus
from cms_admin.models.job_post import EmploymentType, ExperienceLevel, JobCategory, JobPost
from cms_admin.models.identity import LocalIdentity, LocalIdentitySession

__all__ = [
    "Role", "Permission", "RolePermission",
    "User", "UserStatus", "Invitation", "AuditLog", "AllowedDomain",
    "BlogCategory", "BlogContributor", "BlogPost", "PostStatus",
    "JobCategory", "JobPost", "EmploymentType", "ExperienceLevel",
    "LocalIdentity", "LocalIdentitySession",
]
