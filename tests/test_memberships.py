from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

import seshprep.api.v1.collections as collection_routes
import seshprep.api.v1.members as member_routes
import seshprep.schemas as schemas
from seshprep.context import RequestContext
from seshprep.errors import (
    AccessDenied,
    AlreadyExists,
    EmailDeliveryError,
    InvitationError,
    RateLimited,
    ValidationFailed,
)
from seshprep.mailer import Mailer
from seshprep.models import InvitationRateLimit, InvitationToken, ProjectMember, RoleChangeAudit
from seshprep.services import invitations, memberships
from seshprep.services.accounts import register_account
from seshprep.utils.timeutils import utcnow


class FailingMailer(Mailer):
    def send(self, message):
        raise EmailDeliveryError("SMTP server unavailable")


def _invite(db: Session, producer, project, email, role="artist"):
    member, token = memberships.invite_project_member(
        db, RequestContext.for_user(producer), project.id, email, role
    )
    db.commit()
    return member, token


def test_invite_normalizes_email_and_issues_token(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    project = make_project(producer)

    member, token = _invite(db_session, producer, project, "  Singer@Example.com ", "artist")

    assert member.email == "singer@example.com"
    assert member.accepted_at is None
    assert member.invited_by == producer.id
    assert token.email == "singer@example.com"
    assert token.used_at is None
    assert len(token.token) >= 40
    assert abs((token.expires_at - token.created_at) - timedelta(days=7)) < timedelta(seconds=1)


def test_duplicate_invite_is_rejected_by_the_constraint(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    project = make_project(producer)
    _invite(db_session, producer, project, "singer@example.com")

    with pytest.raises(AlreadyExists) as exc:
        _invite(db_session, producer, project, "SINGER@example.com", "editor")
    assert exc.value.message == "This email is already invited to the project"

    assert db_session.query(ProjectMember).count() == 1
    # the rejected attempt is not counted against the rate limit
    assert db_session.query(InvitationRateLimit).count() == 1


def test_invalid_role_and_email_are_rejected(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    project = make_project(producer)

    with pytest.raises(ValidationFailed):
        _invite(db_session, producer, project, "singer@example.com", "producer")
    with pytest.raises(ValidationFailed):
        _invite(db_session, producer, project, "not-an-email", "artist")


def test_only_the_producer_can_invite(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    manager = make_user("manager@example.com")
    project = make_project(producer)
    _invite(db_session, producer, project, manager.email, "manager")
    memberships.accept_project_invitation(db_session, RequestContext.for_user(manager), project.id)
    db_session.commit()

    with pytest.raises(AccessDenied):
        _invite(db_session, manager, project, "friend@example.com")


def test_eleventh_invitation_within_an_hour_is_rate_limited(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    project = make_project(producer)
    for n in range(10):
        _invite(db_session, producer, project, f"guest{n}@example.com")

    with pytest.raises(RateLimited):
        _invite(db_session, producer, project, "guest10@example.com")

    other_project = make_project(producer, title="Second Song")
    member, _ = _invite(db_session, producer, other_project, "guest10@example.com")
    assert member.id is not None


def test_rate_limit_window_slides(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    project = make_project(producer)
    long_ago = utcnow() - timedelta(minutes=61)
    for n in range(10):
        db_session.add(
            InvitationRateLimit(
                user_id=producer.id, project_id=project.id, invited_email=f"old{n}@example.com", created_at=long_ago
            )
        )
    db_session.commit()

    member, _ = _invite(db_session, producer, project, "fresh@example.com")
    assert member.id is not None


def test_token_can_be_redeemed_once(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    project = make_project(producer)
    _, token = _invite(db_session, producer, project, "singer@example.com")

    redeemed = invitations.redeem_invitation_token(db_session, token.token)
    db_session.commit()
    assert redeemed.used_at is not None

    with pytest.raises(InvitationError) as exc:
        invitations.redeem_invitation_token(db_session, token.token)
    assert exc.value.reason == "already-used"


def test_unknown_and_expired_tokens(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    project = make_project(producer)
    _, token = _invite(db_session, producer, project, "singer@example.com")

    with pytest.raises(InvitationError) as exc:
        invitations.lookup_invitation_token(db_session, "no-such-token")
    assert exc.value.reason == "invalid"

    with pytest.raises(InvitationError) as exc:
        invitations.redeem_invitation_token(db_session, token.token, now=utcnow() + timedelta(days=8))
    assert exc.value.reason == "expired"
    assert db_session.query(InvitationToken).filter(InvitationToken.used_at.isnot(None)).count() == 0


def test_signup_with_token_uses_the_invited_email(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    other_producer = make_user("other@example.com")
    project = make_project(producer)
    other_project = make_project(other_producer, title="Other Song")
    _, token = _invite(db_session, producer, project, "singer@example.com", "editor")
    _invite(db_session, other_producer, other_project, "singer@example.com", "artist")

    user = register_account(
        db_session, email="typo@example.com", password="secret123", invitation_token=token.token
    )
    db_session.commit()
    db_session.expire_all()

    assert user.email == "singer@example.com"
    invited = db_session.query(ProjectMember).filter(ProjectMember.project_id == project.id).one()
    assert invited.user_id == user.id
    assert invited.accepted_at is not None

    pending = db_session.query(ProjectMember).filter(ProjectMember.project_id == other_project.id).one()
    assert pending.user_id == user.id
    assert pending.accepted_at is None

    with pytest.raises(InvitationError):
        register_account(db_session, email="x@example.com", password="secret123", invitation_token=token.token)


def test_role_changes_are_audited(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    project = make_project(producer)
    member, _ = _invite(db_session, producer, project, "singer@example.com", "artist")

    updated = memberships.update_project_member_role(
        db_session, RequestContext.for_user(producer), project.id, member.id, "editor", reason="mixing help"
    )
    db_session.commit()

    assert updated.role == "editor"
    audit = db_session.query(RoleChangeAudit).one()
    assert (audit.old_role, audit.new_role) == ("artist", "editor")
    assert audit.changed_by == producer.id
    assert audit.reason == "mixing help"


def test_accepted_manager_can_manage_members_but_editor_cannot(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    manager = make_user("manager@example.com")
    editor = make_user("editor@example.com")
    project = make_project(producer)
    _invite(db_session, producer, project, manager.email, "manager")
    editor_member, _ = _invite(db_session, producer, project, editor.email, "editor")
    for user in (manager, editor):
        memberships.accept_project_invitation(db_session, RequestContext.for_user(user), project.id)
    db_session.commit()

    with pytest.raises(AccessDenied):
        memberships.remove_project_member(db_session, RequestContext.for_user(editor), project.id, editor_member.id)

    memberships.update_project_member_role(
        db_session, RequestContext.for_user(manager), project.id, editor_member.id, "artist"
    )
    memberships.remove_project_member(db_session, RequestContext.for_user(manager), project.id, editor_member.id)
    db_session.commit()
    assert db_session.query(ProjectMember).filter(ProjectMember.email == editor.email).count() == 0


def test_email_failure_keeps_the_membership(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    project = make_project(producer)

    result = member_routes.invite_project_member(
        project.id,
        schemas.MemberInvite(email="singer@example.com", role="artist"),
        db_session,
        producer,
        FailingMailer(),
    )

    assert result.email_sent is False
    assert result.email_error == "SMTP server unavailable"
    assert db_session.query(ProjectMember).filter(ProjectMember.email == "singer@example.com").count() == 1


def test_collection_invite_reports_email_failure(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    collection = collection_routes.create_collection(
        schemas.CollectionCreate(title="Summer EP"), db_session, RequestContext.for_user(owner)
    )

    result = member_routes.invite_collection_member(
        collection.id,
        schemas.MemberInvite(email="x@example.com", role="artist"),
        db_session,
        owner,
        FailingMailer(),
    )

    assert result.email_sent is False
    assert result.email_error == "SMTP server unavailable"
    assert result.member.email == "x@example.com"
    assert memberships.list_collection_members(db_session, RequestContext.for_user(owner), collection.id)[0].id == result.member.id


def test_collection_invite_reports_email_sent(db_session: Session, make_user, mailer):
    owner = make_user("owner@example.com")
    collection = collection_routes.create_collection(
        schemas.CollectionCreate(title="Summer EP"), db_session, RequestContext.for_user(owner)
    )

    result = member_routes.invite_collection_member(
        collection.id, schemas.MemberInvite(email="y@example.com", role="editor"), db_session, owner, mailer
    )

    assert result.email_sent is True
    assert result.email_error is None
    assert f"/collections/{collection.id}" in mailer.outbox[0].text_content


@pytest.mark.parametrize(
    "email, masked",
    [("singer@example.com", "s***@example.com"), ("a@b.co", "a***@b.co"), ("broken", "***@***.***")],
)
def test_mask_email(email, masked):
    assert memberships.mask_email(email) == masked


def test_member_list_masks_emails_for_artists(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    manager = make_user("manager@example.com")
    artist = make_user("artist@example.com")
    project = make_project(producer)
    for user, role in ((manager, "manager"), (artist, "artist")):
        _invite(db_session, producer, project, user.email, role)
        memberships.accept_project_invitation(db_session, RequestContext.for_user(user), project.id)
    _invite(db_session, producer, project, "pending.singer@example.com", "artist")
    db_session.commit()

    def emails(viewer):
        listed = member_routes.list_project_members(project.id, db_session, RequestContext.for_user(viewer))
        return sorted(m.email for m in listed)

    everyone = ["artist@example.com", "manager@example.com", "pending.singer@example.com"]
    assert emails(producer) == everyone
    assert emails(manager) == everyone
    assert emails(artist) == ["artist@example.com", "m***@example.com", "p***@example.com"]


def test_collection_member_list_masks_emails_for_artists(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    artist = make_user("artist@example.com")
    collection = collection_routes.create_collection(
        schemas.CollectionCreate(title="Summer EP"), db_session, RequestContext.for_user(owner)
    )
    owner_ctx = RequestContext.for_user(owner)
    memberships.invite_collection_member(db_session, owner_ctx, collection.id, artist.email, "artist")
    memberships.invite_collection_member(db_session, owner_ctx, collection.id, "editor@example.com", "editor")
    memberships.accept_collection_invitation(db_session, RequestContext.for_user(artist), collection.id)
    db_session.commit()

    as_artist = member_routes.list_collection_members(collection.id, db_session, RequestContext.for_user(artist))
    as_owner = member_routes.list_collection_members(collection.id, db_session, owner_ctx)

    assert [m.email for m in as_artist] == ["artist@example.com", "e***@example.com"]
    assert [m.email for m in as_owner] == ["artist@example.com", "editor@example.com"]


def test_invitation_email_links_to_signup(db_session: Session, make_user, make_project, mailer):
    producer = make_user("producer@example.com", display_name="DJ Producer")
    project = make_project(producer, title="Night Bus")

    result = member_routes.invite_project_member(
        project.id, schemas.MemberInvite(email="singer@example.com", role="editor"), db_session, producer, mailer
    )

    assert result.email_sent is True
    token = db_session.query(InvitationToken).one()
    message = mailer.outbox[0]
    assert message.to_email == "singer@example.com"
    assert "Night Bus" in message.subject
    assert f"/auth?token={token.token}" in message.text_content
    assert "DJ Producer" in message.text_content


def test_collection_membership_lifecycle(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    editor = make_user("editor@example.com")
    collection = collection_routes.create_collection(
        schemas.CollectionCreate(title="Summer EP", release_type="EP"), db_session, RequestContext.for_user(owner)
    )

    member = memberships.invite_collection_member(
        db_session, RequestContext.for_user(owner), collection.id, "Editor@example.com", "editor"
    )
    db_session.commit()
    with pytest.raises(AlreadyExists):
        memberships.invite_collection_member(
            db_session, RequestContext.for_user(owner), collection.id, "editor@example.com", "artist"
        )

    accepted = memberships.accept_collection_invitation(db_session, RequestContext.for_user(editor), collection.id)
    db_session.commit()
    assert accepted.id == member.id
    assert accepted.user_id == editor.id

    listed = memberships.list_collection_members(db_session, RequestContext.for_user(editor), collection.id)
    assert [m.email for m in listed] == ["editor@example.com"]
