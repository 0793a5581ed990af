"""Pydantic schemas for API request/response serialization."""

from datetime import datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from cms_admin.models.blog import PostStatus
from cms_admin.models.job_post import EmploymentType, ExperienceLevel
from cms_admin.models.user import UserStatus

T = TypeVar("T")


# ---- Generic ----
class ActionResponse(BaseModel, Generic[T]):
    """Uniform success/failure envelope returned by every action."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


# ---- Actor ----
class RoleInfo(BaseModel):
    """Role fields the authorization engine needs, parsed once from the join."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    is_super_admin: bool = False
    is_system: bool = False


class Actor(BaseModel):
    """Authenticated caller: profile joined with its role."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    email: str
    status: UserStatus
    role_id: str
    role: RoleInfo
    avatar_url: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role.is_super_admin


# ---- Auth ----
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: int
    user: Actor


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class PasswordRequest(BaseModel):
    password: str


class MenuItemOut(BaseModel):
    id: str
    label: str
    path: Optional[str] = None
    icon: Optional[str] = None
    permission_key: Optional[str] = None
    children: List["MenuItemOut"] = []


class MeResponse(BaseModel):
    user: Actor
    permissions: List[str]
    menu: List[MenuItemOut]


# ---- Permissions ----
class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    label: str
    description: Optional[str] = None
    group: str


class PermissionGroupOut(BaseModel):
    group: str
    permissions: List[PermissionOut]


# ---- Invitations ----
class InvitationCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    role_id: str


class InvitationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role_id: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    accept_url: Optional[str] = None  # only shown once on creation


class InvitationDetails(BaseModel):
    email: str
    name: str
    role_id: str


class AcceptInvitationRequest(BaseModel):
    token: str
    name: str
    password: str


class VerifyInvitationRequest(BaseModel):
    token: str


# ---- Users ----
class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    status: UserStatus
    role_id: str
    role: Optional[RoleInfo] = None
    avatar_url: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserCreateRequest(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    role_id: str
    password: Optional[str] = None


class UserUpdateRequest(BaseModel):
    name: Optional[str] = None
    role_id: Optional[str] = None
    avatar_url: Optional[str] = None


class UserStatusRequest(BaseModel):
    status: Literal["active", "inactive"]


# ---- Roles ----
class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    is_super_admin: bool
    is_system: bool
    user_count: int = 0
    permissions: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: List[str] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class RolePermissionsUpdate(BaseModel):
    permissions: List[str]


# ---- Audit ----
class AuditActorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    email: str


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    actor_id: Optional[str] = None
    actor: Optional[AuditActorOut] = None
    action_type: str
    target_type: str
    target_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_json")
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None


class AuditActionCount(BaseModel):
    action_type: str
    count: int


class AuditStats(BaseModel):
    total_logs: int
    today_logs: int
    week_logs: int
    top_actions: List[AuditActionCount]


class AuditCleanupResult(BaseModel):
    deleted_count: int


# ---- Allowed domains ----
class AllowedDomainIn(BaseModel):
    domain: str
    description: Optional[str] = None
    is_active: bool = True


class AllowedDomainUpdate(BaseModel):
    domain: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class AllowedDomainOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    domain: str
    description: Optional[str] = None
    is_active: bool
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---- Blog ----
class CategoryIn(BaseModel):
    name: str = Field(..., max_length=100)


class BlogCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BlogContributorIn(BaseModel):
    full_name: str = Field(..., max_length=255)
    position: str = Field(..., max_length=255)
    bio: str
    avatar_url: Optional[str] = None
    expertise: List[str] = []
    stats: List[str] = []


class BlogContributorUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)
    position: Optional[str] = Field(None, max_length=255)
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    expertise: Optional[List[str]] = None
    stats: Optional[List[str]] = None


class BlogContributorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    position: str
    bio: str
    avatar_url: Optional[str] = None
    expertise: List[str] = []
    stats: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BlogPostIn(BaseModel):
    title: str = Field(..., max_length=255)
    content: str
    category_id: str
    contributor_id: str
    seo_meta_title: str = ""
    seo_meta_description: str = ""
    cover_image_url: Optional[str] = None
    reading_time: Optional[int] = Field(None, ge=1)


class BlogPostUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    category_id: Optional[str] = None
    contributor_id: Optional[str] = None
    seo_meta_title: Optional[str] = None
    seo_meta_description: Optional[str] = None
    cover_image_url: Optional[str] = None
    reading_time: Optional[int] = Field(None, ge=1)


class BlogPostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    seo_meta_title: str
    seo_meta_description: str
    cover_image_url: Optional[str] = None
    content: str
    reading_time: int
    status: PostStatus
    published_date: Optional[datetime] = None
    category: Optional[BlogCategoryOut] = None
    contributor: Optional[BlogContributorOut] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    published_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PublicBlogPostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    seo_meta_title: str
    seo_meta_description: str
    cover_image_url: Optional[str] = None
    content: str
    reading_time: int
    published_date: Optional[datetime] = None
    category: Optional[BlogCategoryOut] = None
    contributor: Optional[BlogContributorOut] = None


# ---- Job posts ----
class JobCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    post_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class JobPostFields(BaseModel):
    overview: Optional[str] = None
    department: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    employment_type: Optional[EmploymentType] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    salary_currency: Optional[str] = Field(None, max_length=3)
    salary_period: Optional[str] = Field(None, max_length=20)
    salary_custom_text: Optional[str] = Field(None, max_length=255)
    responsibilities: Optional[str] = None
    must_have_skills: Optional[str] = None
    preferred_skills: Optional[str] = None
    benefits: Optional[str] = None
    skills: Optional[List[str]] = None
    experience_level: Optional[ExperienceLevel] = None
    custom_posted_date: Optional[datetime] = None
    seo_meta_title: Optional[str] = Field(None, max_length=255)
    seo_meta_description: Optional[str] = Field(None, max_length=500)


class JobPostIn(JobPostFields):
    title: str = Field(..., max_length=255)
    category_id: Optional[str] = None


class JobPostUpdate(JobPostFields):
    title: Optional[str] = Field(None, max_length=255)
    category_id: Optional[str] = None


class JobPostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_id: str
    slug: str
    title: str
    overview: Optional[str] = None
    category: Optional[JobCategoryOut] = None
    department: Optional[str] = None
    location: Optional[str] = None
    employment_type: EmploymentType
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    salary_currency: str
    salary_period: str
    salary_custom_text: Optional[str] = None
    responsibilities: str
    must_have_skills: str
    preferred_skills: str
    benefits: str
    skills: List[str] = []
    experience_level: Optional[ExperienceLevel] = None
    status: PostStatus
    published_at: Optional[datetime] = None
    custom_posted_date: Optional[datetime] = None
    seo_meta_title: Optional[str] = None
    seo_meta_description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
