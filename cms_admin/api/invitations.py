"""Invitation API router."""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from cms_admin.core.config import settings
from cms_admin.core.permissions import Permissions
from cms_admin.core.rate_limiter import limiter
from cms_admin.core.security import RequirePermission, get_email_delivery, get_identity
from cms_admin.db.session import get_db
from cms_admin.identity.base import IdentityProvider
from cms_admin.identity.delivery import EmailDelivery
from cms_admin.schemas.schemas import (
    AcceptInvitationRequest, ActionResponse, Actor, InvitationCreate,
    InvitationDetails, InvitationOut, VerifyInvitationRequest,
)
from cms_admin.services.invitation_service import invitation_service

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.post("", response_model=ActionResponse[InvitationOut], status_code=201)
async def create_invitation(
    body: InvitationCreate,
    db: Session = Depends(get_db),
    delivery: EmailDelivery = Depends(get_email_delivery),
    actor: Actor = Depends(RequirePermission(Permissions.USERS_CREATE)),
):
    """Issue an invitation and hand the accept link to the email sender.

    The link is also returned here, once; it cannot be recovered later.
    """
    invitation, raw_token = invitation_service.issue_invitation(
        db, actor, body.email, body.name, body.role_id,
    )
    accept_url = f"{settings.accept_invitation_url}?{urlencode({'token': raw_token})}"
    sent = await delivery.deliver(
        "invitation",
        invitation.email,
        accept_url,
        {"name": invitation.name, "invited_by": actor.name, "expires_at": invitation.expires_at.isoformat()},
    )

    out = InvitationOut.model_validate(invitation).model_copy(update={"accept_url": accept_url})
    message = "Invitation sent" if sent else "Invitation created, but the email could not be sent"
    return ActionResponse(success=True, data=out, message=message)


@router.post("/verify", response_model=ActionResponse[InvitationDetails])
async def verify_invitation(body: VerifyInvitationRequest, db: Session = Depends(get_db)):
    details = invitation_service.verify_invitation_token(db, body.token)
    return ActionResponse(success=True, data=details)


@router.post("/accept", response_model=ActionResponse[Actor])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def accept_invitation(
    request: Request,
    body: AcceptInvitationRequest,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
):
    actor = await invitation_service.accept_invitation(
        db, identity, body.token, body.name, body.password,
    )
    return ActionResponse(success=True, data=actor, message="Account created successfully. Please log in.")
