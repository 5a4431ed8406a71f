"""Project and collection membership lifecycle.

A membership row starts ``invited`` (``accepted_at`` null) and becomes
``accepted`` once the invitee accepts. Roles can change in either state and
removal deletes the row. Duplicate invitations are rejected by the
``(target, email)`` unique constraint, never by a prior lookup.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from seshprep.context import RequestContext
from seshprep.errors import AlreadyExists, EmailDeliveryError, NotFound, ValidationFailed
from seshprep.mailer import Mailer, invitation_email
from seshprep.models import (
    CollectionMember,
    InvitationToken,
    ProjectMember,
    ProjectRole,
    RoleChangeAudit,
    User,
)
from seshprep.services import invitations
from seshprep.services.permissions import (
    require_collection_capability,
    require_collection_member_admin,
    require_member_admin,
    require_project_capability,
)
from seshprep.services.roles import COLLECTION_MEMBER_ROLES, PROJECT_MEMBER_ROLES, Capabilities
from seshprep.services.validation import validate_email
from seshprep.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

# viewer roles that see every member's full address
FULL_EMAIL_ROLES = frozenset({ProjectRole.PRODUCER.value, ProjectRole.MANAGER.value})
HIDDEN_EMAIL = "***@***.***"


@dataclass
class InvitationNotice:
    email_sent: bool
    email_error: Optional[str] = None


def _validate_role(role: str, allowed) -> str:
    role = (role or "").strip().lower()
    if role not in allowed:
        raise ValidationFailed(f"Role must be one of: {', '.join(sorted(allowed))}")
    return role


def _insert_member(db: Session, member, duplicate_message: str):
    db.add(member)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise AlreadyExists(duplicate_message)
    return member


def mask_email(email: str) -> str:
    local, _, domain = (email or "").partition("@")
    if not local or not domain:
        return HIDDEN_EMAIL
    return f"{local[0]}***@{domain}"


def visible_email(ctx: RequestContext, viewer: Capabilities, member) -> str:
    """Address of ``member`` as ``ctx`` may see it in a member list.

    The producer or owner, managers and the member themselves get the full
    address; other viewers get ``x***@domain``.
    """
    if not ctx.is_authenticated:
        return HIDDEN_EMAIL
    if viewer.role in FULL_EMAIL_ROLES:
        return member.email
    if member.user_id is not None and member.user_id == ctx.account_id:
        return member.email
    if ctx.email and (member.email or "").lower() == ctx.email.strip().lower():
        return member.email
    return mask_email(member.email)


# -- projects ------------------------------------------------------------------


def list_project_members(db: Session, ctx: RequestContext, project_id: int) -> List[ProjectMember]:
    project = require_project_capability(db, ctx, project_id)
    return (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project.id)
        .order_by(ProjectMember.created_at.asc(), ProjectMember.id.asc())
        .all()
    )


def invite_project_member(
    db: Session,
    ctx: RequestContext,
    project_id: int,
    email: str,
    role: str,
    now: Optional[datetime] = None,
) -> Tuple[ProjectMember, InvitationToken]:
    """Create the membership row and its sign-up token. The caller commits."""
    now = now or utcnow()
    project = require_project_capability(db, ctx, project_id, "can_invite_members")
    email = validate_email(email)
    role = _validate_role(role, PROJECT_MEMBER_ROLES)

    invitations.enforce_invitation_rate_limit(db, ctx.account_id, project.id, email, now=now)

    member = ProjectMember(
        project_id=project.id,
        email=email,
        role=role,
        invited_by=ctx.account_id,
        created_at=now,
    )
    _insert_member(db, member, "This email is already invited to the project")

    invitation = invitations.issue_invitation_token(db, ctx.account_id, project.id, email, now=now)
    return member, invitation


def notify_invitee(
    mailer: Mailer,
    email: str,
    target_title: str,
    role: str,
    inviter: Optional[User],
    accept_url: str,
) -> InvitationNotice:
    """Send the invitation email after the membership is committed.

    Delivery problems never undo the membership; they are reported back.
    """
    inviter_name = (inviter.display_name or inviter.email) if inviter else "A colleague"
    try:
        mailer.send(invitation_email(email, target_title or "Untitled Project", role, inviter_name, accept_url))
    except EmailDeliveryError as exc:
        logger.error("Error sending invitation email to %s: %s", email, exc.message)
        return InvitationNotice(email_sent=False, email_error=exc.message)
    return InvitationNotice(email_sent=True)


def _audit_role_change(db: Session, ctx: RequestContext, scope: str, target_id: int, member,
                       new_role: str, reason: Optional[str]) -> None:
    db.add(
        RoleChangeAudit(
            scope=scope,
            target_id=target_id,
            member_id=member.id,
            old_role=member.role,
            new_role=new_role,
            changed_by=ctx.account_id,
            reason=reason,
        )
    )


def update_project_member_role(
    db: Session, ctx: RequestContext, project_id: int, member_id: int, role: str,
    reason: Optional[str] = None,
) -> ProjectMember:
    project = require_member_admin(db, ctx, project_id)
    role = _validate_role(role, PROJECT_MEMBER_ROLES)
    member = (
        db.query(ProjectMember)
        .filter(ProjectMember.id == member_id, ProjectMember.project_id == project.id)
        .first()
    )
    if member is None:
        raise NotFound("Member not found")
    if member.role != role:
        _audit_role_change(db, ctx, "project", project.id, member, role, reason)
        member.role = role
    db.flush()
    return member


def remove_project_member(db: Session, ctx: RequestContext, project_id: int, member_id: int) -> None:
    project = require_member_admin(db, ctx, project_id)
    member = (
        db.query(ProjectMember)
        .filter(ProjectMember.id == member_id, ProjectMember.project_id == project.id)
        .first()
    )
    if member is None:
        raise NotFound("Member not found")
    db.delete(member)
    db.flush()


def accept_project_invitation(
    db: Session, ctx: RequestContext, project_id: int, now: Optional[datetime] = None
) -> ProjectMember:
    member = (
        db.query(ProjectMember)
        .filter(
            ProjectMember.project_id == project_id,
            (ProjectMember.user_id == ctx.account_id) | (func.lower(ProjectMember.email) == (ctx.email or "")),
        )
        .first()
    )
    if member is None:
        raise NotFound("No invitation found for this project")
    member.user_id = ctx.account_id
    if member.accepted_at is None:
        member.accepted_at = now or utcnow()
    db.flush()
    return member


def link_pending_memberships(db: Session, user: User) -> int:
    """Attach invitations addressed to ``user.email`` to the new account."""
    email = (user.email or "").strip().lower()
    linked = 0
    for model in (ProjectMember, CollectionMember):
        linked += (
            db.query(model)
            .filter(func.lower(model.email) == email, model.user_id.is_(None))
            .update({model.user_id: user.id}, synchronize_session=False)
        )
    return linked


# -- collections ---------------------------------------------------------------


def list_collection_members(db: Session, ctx: RequestContext, collection_id: int) -> List[CollectionMember]:
    collection = require_collection_capability(db, ctx, collection_id)
    return (
        db.query(CollectionMember)
        .filter(CollectionMember.collection_id == collection.id)
        .order_by(CollectionMember.created_at.asc(), CollectionMember.id.asc())
        .all()
    )


def invite_collection_member(
    db: Session, ctx: RequestContext, collection_id: int, email: str, role: str,
    now: Optional[datetime] = None,
) -> CollectionMember:
    now = now or utcnow()
    collection = require_collection_capability(db, ctx, collection_id, "can_invite_members")
    email = validate_email(email)
    role = _validate_role(role, COLLECTION_MEMBER_ROLES)

    member = CollectionMember(
        collection_id=collection.id,
        email=email,
        role=role,
        invited_by=ctx.account_id,
        created_at=now,
    )
    return _insert_member(db, member, "This email is already invited to the collection")


def update_collection_member_role(
    db: Session, ctx: RequestContext, collection_id: int, member_id: int, role: str,
    reason: Optional[str] = None,
) -> CollectionMember:
    collection = require_collection_member_admin(db, ctx, collection_id)
    role = _validate_role(role, COLLECTION_MEMBER_ROLES)
    member = (
        db.query(CollectionMember)
        .filter(CollectionMember.id == member_id, CollectionMember.collection_id == collection.id)
        .first()
    )
    if member is None:
        raise NotFound("Member not found")
    if member.role != role:
        _audit_role_change(db, ctx, "collection", collection.id, member, role, reason)
        member.role = role
    db.flush()
    return member


def remove_collection_member(db: Session, ctx: RequestContext, collection_id: int, member_id: int) -> None:
    collection = require_collection_member_admin(db, ctx, collection_id)
    member = (
        db.query(CollectionMember)
        .filter(CollectionMember.id == member_id, CollectionMember.collection_id == collection.id)
        .first()
    )
    if member is None:
        raise NotFound("Member not found")
    db.delete(member)
    db.flush()


def accept_collection_invitation(
    db: Session, ctx: RequestContext, collection_id: int, now: Optional[datetime] = None
) -> CollectionMember:
    member = (
        db.query(CollectionMember)
        .filter(
            CollectionMember.collection_id == collection_id,
            (CollectionMember.user_id == ctx.account_id)
            | (func.lower(CollectionMember.email) == (ctx.email or "")),
        )
        .first()
    )
    if member is None:
        raise NotFound("No invitation found for this collection")
    member.user_id = ctx.account_id
    if member.accepted_at is None:
        member.accepted_at = now or utcnow()
    db.flush()
    return member
