"""Seed the super-admin account from env vars."""

from typing import Optional

from sqlalchemy.orm import Session

from cms_admin.core.config import settings
from cms_admin.core.exceptions import ResourceConflictError
from cms_admin.db.seeds.seed_roles import SUPER_ADMIN_ROLE
from cms_admin.identity.base import IdentityProvider
from cms_admin.models.role import Role
from cms_admin.models.user import User, UserStatus


async def seed_super_admin(db: Session, identity: IdentityProvider) -> Optional[User]:
    """Create the identity account and active profile if not already present."""
    super_admin_role = db.query(Role).filter(Role.is_super_admin.is_(True)).first()
    if not super_admin_role:
        print(f"⚠️  '{SUPER_ADMIN_ROLE}' role not found. Run seed_roles first.")
        return None

    email = settings.SUPER_ADMIN_EMAIL.strip().lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        print(f"ℹ️  Super admin '{email}' already exists, skipping.")
        return existing

    try:
        account = await identity.admin_create_user(
            email=email,
            password=settings.SUPER_ADMIN_PASSWORD,
            email_confirm=True,
            user_metadata={"name": settings.SUPER_ADMIN_NAME},
        )
    except ResourceConflictError:
        print(f"⚠️  Identity account '{email}' exists without a profile; create the profile manually.")
        return None

    admin = User(
        id=account.id,
        name=settings.SUPER_ADMIN_NAME,
        email=email,
        status=UserStatus.active,
        role_id=super_admin_role.id,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    print(f"✅ Created super admin: {email}")
    return admin
