"""Tests for invitation issuance, verification, acceptance and activation."""

import asyncio
from datetime import timedelta

import httpx
import pytest

from cms_admin.core.clock import as_utc, utcnow
from cms_admin.core.exceptions import (
    AcceptInvitationError, ForbiddenError, InvalidInvitationError, InvitationExpiredError,
    ResourceConflictError, ValidationError,
)
from cms_admin.core.security import hash_token
from cms_admin.identity.gotrue import GoTrueIdentityProvider
from cms_admin.models.audit_log import AuditLog
from cms_admin.models.identity import LocalIdentity
from cms_admin.models.invitation import Invitation
from cms_admin.models.user import User, UserStatus
from cms_admin.services.audit_service import AuditActions
from cms_admin.services.invitation_service import InvitationService, invitation_service

from fakes import UndeletableIdentity, UnavailableIdentity, YieldingIdentity

NEW_PASSWORD = "a-long-password"


def _issue(db, issuer, roles, email="alice@example.com", name="Alice", role="Editor"):
    return invitation_service.issue_invitation(db, issuer, email, name, roles[role].id)


def _audit_count(db, action_type):
    return db.query(AuditLog).filter(AuditLog.action_type == action_type).count()


def test_issue_stores_only_the_token_hash(db, super_admin, roles):
    invitation, raw = _issue(db, super_admin, roles, email="  Alice@Example.COM ")

    assert invitation.email == "alice@example.com"
    assert invitation.token_hash == hash_token(raw)
    assert raw not in invitation.token_hash
    assert invitation.accepted_at is None
    expected = utcnow() + timedelta(days=7)
    assert abs((as_utc(invitation.expires_at) - expected).total_seconds()) < 60
    assert _audit_count(db, AuditActions.USER_INVITE) == 1


def test_issue_requires_users_create(db, editor, roles):
    with pytest.raises(ForbiddenError):
        _issue(db, editor, roles)


def test_issue_rejects_existing_profile(db, super_admin, editor, roles):
    with pytest.raises(ResourceConflictError):
        _issue(db, super_admin, roles, email=editor.email)


def test_verify_returns_invitation_details(db, super_admin, roles):
    _, raw = _issue(db, super_admin, roles)

    details = invitation_service.verify_invitation_token(db, raw)

    assert details.email == "alice@example.com"
    assert details.name == "Alice"
    assert details.role_id == roles["Editor"].id


@pytest.mark.parametrize("token", ["", "garbage", "x" * 43])
def test_verify_rejects_unknown_tokens(db, token):
    with pytest.raises(InvalidInvitationError) as exc:
        invitation_service.verify_invitation_token(db, token)
    assert exc.value.message == "Invalid or expired invitation link"


def test_expired_invitation_is_reported_as_expired(db, super_admin, roles):
    invitation, raw = _issue(db, super_admin, roles)
    invitation.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()

    with pytest.raises(InvitationExpiredError) as exc:
        invitation_service.verify_invitation_token(db, raw)
    assert exc.value.status_code == 410


def test_multiple_pending_invitations_stay_valid(db, super_admin, roles):
    _, first = _issue(db, super_admin, roles)
    _, second = _issue(db, super_admin, roles, role="Viewer")

    assert invitation_service.verify_invitation_token(db, first).role_id == roles["Editor"].id
    assert invitation_service.verify_invitation_token(db, second).role_id == roles["Viewer"].id


@pytest.mark.asyncio
async def test_accept_creates_active_profile_and_consumes_token(db, identity, super_admin, roles):
    invitation, raw = _issue(db, super_admin, roles)

    actor = await invitation_service.accept_invitation(db, identity, raw, "Alice A.", NEW_PASSWORD)

    assert actor.email == "alice@example.com"
    assert actor.name == "Alice A."
    assert actor.status == UserStatus.active
    assert actor.role.name == "Editor"
    db.refresh(invitation)
    assert invitation.accepted_at is not None
    assert _audit_count(db, AuditActions.USER_INVITATION_ACCEPTED) == 1

    session = await identity.sign_in_with_password("alice@example.com", NEW_PASSWORD)
    assert session.user.id == actor.id

    with pytest.raises(InvalidInvitationError):
        invitation_service.verify_invitation_token(db, raw)
    with pytest.raises(InvalidInvitationError):
        await invitation_service.accept_invitation(db, identity, raw, "Alice", NEW_PASSWORD)


@pytest.mark.asyncio
async def test_accept_expired_invitation(db, identity, super_admin, roles):
    invitation, raw = _issue(db, super_admin, roles)
    invitation.expires_at = utcnow() - timedelta(days=1)
    db.commit()

    with pytest.raises(InvitationExpiredError):
        await invitation_service.accept_invitation(db, identity, raw, "Alice", NEW_PASSWORD)
    assert db.query(LocalIdentity).filter(LocalIdentity.email == "alice@example.com").count() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("name,password", [("", NEW_PASSWORD), ("   ", NEW_PASSWORD), ("Alice", "short")])
async def test_accept_validates_input_before_claiming(db, identity, super_admin, roles, name, password):
    invitation, raw = _issue(db, super_admin, roles)

    with pytest.raises(ValidationError):
        await invitation_service.accept_invitation(db, identity, raw, name, password)

    db.refresh(invitation)
    assert invitation.accepted_at is None


def test_claim_is_won_only_once(db, super_admin, roles):
    invitation, _ = _issue(db, super_admin, roles)

    assert InvitationService._claim(db, invitation.id) is True
    assert InvitationService._claim(db, invitation.id) is False


@pytest.mark.asyncio
async def test_profile_failure_rolls_back_identity_account(db, identity, super_admin, roles):
    invitation, raw = _issue(db, super_admin, roles)
    # A profile for the same email appears between issuing and accepting
    db.add(User(id="00000000-0000-0000-0000-00000000a11c", name="Other", email="alice@example.com",
                role_id=roles["Viewer"].id, status=UserStatus.inactive))
    db.commit()

    with pytest.raises(AcceptInvitationError) as exc:
        await invitation_service.accept_invitation(db, identity, raw, "Alice", NEW_PASSWORD)

    assert exc.value.message == "Failed to create user profile. Please try again."
    assert db.query(LocalIdentity).filter(LocalIdentity.email == "alice@example.com").count() == 0
    db.refresh(invitation)
    assert invitation.accepted_at is None
    assert _audit_count(db, AuditActions.USER_INVITATION_ACCEPTED) == 0
    # the token is still usable for a retry
    assert invitation_service.verify_invitation_token(db, raw).email == "alice@example.com"


@pytest.mark.asyncio
async def test_failed_identity_cleanup_still_returns_generic_error(db, session_factory, delivery, super_admin, roles):
    identity = UndeletableIdentity(session_factory, delivery)
    _, raw = _issue(db, super_admin, roles)
    db.add(User(id="00000000-0000-0000-0000-00000000a11c", name="Other", email="alice@example.com",
                role_id=roles["Viewer"].id, status=UserStatus.inactive))
    db.commit()

    with pytest.raises(AcceptInvitationError):
        await invitation_service.accept_invitation(db, identity, raw, "Alice", NEW_PASSWORD)

    assert len(identity.delete_attempts) == 1


@pytest.mark.asyncio
async def test_identity_failure_releases_claim(db, identity, super_admin, roles):
    invitation, raw = _issue(db, super_admin, roles)
    # An identity account already exists for this email
    await identity.admin_create_user("alice@example.com", "someone-elses-password")

    with pytest.raises(AcceptInvitationError) as exc:
        await invitation_service.accept_invitation(db, identity, raw, "Alice", NEW_PASSWORD)

    assert exc.value.message == "Failed to create account. Please try again."
    db.refresh(invitation)
    assert invitation.accepted_at is None
    assert db.query(User).filter(User.email == "alice@example.com").count() == 0


@pytest.mark.asyncio
async def test_unavailable_identity_service_releases_claim(db, super_admin, roles):
    invitation, raw = _issue(db, super_admin, roles)

    with pytest.raises(AcceptInvitationError):
        await invitation_service.accept_invitation(db, UnavailableIdentity(), raw, "Alice", NEW_PASSWORD)

    db.refresh(invitation)
    assert invitation.accepted_at is None


@pytest.mark.asyncio
async def test_non_json_identity_response_releases_claim(db, super_admin, roles):
    invitation, raw = _issue(db, super_admin, roles)

    def handler(request):
        if request.url.path == "/auth/v1/admin/users":
            return httpx.Response(200, text="<html>gateway</html>")
        return httpx.Response(404)

    gotrue = GoTrueIdentityProvider(
        base_url="https://auth.example.com",
        anon_key="anon",
        service_role_key="service",
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(AcceptInvitationError) as exc:
        await invitation_service.accept_invitation(db, gotrue, raw, "Alice", NEW_PASSWORD)
    await gotrue.aclose()

    assert exc.value.message == "Failed to create account. Please try again."
    db.refresh(invitation)
    assert invitation.accepted_at is None
    assert invitation_service.verify_invitation_token(db, raw).email == "alice@example.com"


@pytest.mark.asyncio
async def test_unexpected_identity_exception_releases_claim(db, identity, super_admin, roles, monkeypatch):
    invitation, raw = _issue(db, super_admin, roles)

    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(identity, "admin_create_user", broken)

    with pytest.raises(AcceptInvitationError):
        await invitation_service.accept_invitation(db, identity, raw, "Alice", NEW_PASSWORD)

    db.refresh(invitation)
    assert invitation.accepted_at is None


@pytest.mark.asyncio
async def test_concurrent_accepts_create_one_profile(db, session_factory, delivery, super_admin, roles):
    _, raw = _issue(db, super_admin, roles)
    identity = YieldingIdentity(session_factory, delivery)
    first, second = session_factory(), session_factory()
    try:
        results = await asyncio.gather(
            invitation_service.accept_invitation(first, identity, raw, "Alice", NEW_PASSWORD),
            invitation_service.accept_invitation(second, identity, raw, "Alice", NEW_PASSWORD),
            return_exceptions=True,
        )
    finally:
        first.close()
        second.close()

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert winners[0].email == "alice@example.com"
    assert len(losers) == 1
    assert isinstance(losers[0], InvalidInvitationError)
    assert db.query(User).filter(User.email == "alice@example.com").count() == 1
    assert db.query(LocalIdentity).filter(LocalIdentity.email == "alice@example.com").count() == 1
    assert _audit_count(db, AuditActions.USER_INVITATION_ACCEPTED) == 1


def test_activate_after_setup_is_idempotent(db, make_actor):
    invited = make_actor("Viewer", email="invited@example.com", status=UserStatus.invited)

    first = invitation_service.activate_after_setup(db, invited)
    second = invitation_service.activate_after_setup(db, first)

    assert first.status == UserStatus.active
    assert second.status == UserStatus.active
    assert _audit_count(db, AuditActions.USER_ACTIVATED) == 1
    entry = db.query(AuditLog).filter(AuditLog.action_type == AuditActions.USER_ACTIVATED).one()
    assert entry.metadata_json == {"activation_type": "password_setup"}


@pytest.mark.parametrize("status", [UserStatus.inactive, UserStatus.deleted])
def test_activate_after_setup_rejects_locked_profiles(db, make_actor, status):
    actor = make_actor("Viewer", email="locked@example.com", status=status)
    with pytest.raises(ValidationError):
        invitation_service.activate_after_setup(db, actor)
