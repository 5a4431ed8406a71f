"""Project and collection membership endpoints"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from seshprep.config import settings
from seshprep.context import RequestContext
from seshprep.database import get_db
from seshprep.dependencies import get_current_user, get_mailer, get_request_context
from seshprep.mailer import Mailer
from seshprep.models import User
from seshprep.schemas import (
    CollectionInvitationResult,
    CollectionMemberResponse,
    InvitationResult,
    MemberInvite,
    MemberRoleUpdate,
    ProjectMemberResponse,
)
from seshprep.services import memberships
from seshprep.services.invitations import accept_url
from seshprep.services.permissions import (
    get_collection_permissions,
    get_project_permissions,
    require_collection_capability,
    require_project_capability,
)

project_router = APIRouter()
collection_router = APIRouter()


def _member_view(schema, ctx: RequestContext, viewer, member):
    view = schema.model_validate(member)
    return view.model_copy(update={"email": memberships.visible_email(ctx, viewer, member)})


# -- projects ------------------------------------------------------------------


@project_router.get("/{project_id}/members", response_model=List[ProjectMemberResponse])
def list_project_members(
    project_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)
):
    project = require_project_capability(db, ctx, project_id)
    viewer = get_project_permissions(db, ctx, project)
    return [
        _member_view(ProjectMemberResponse, ctx, viewer, member)
        for member in memberships.list_project_members(db, ctx, project.id)
    ]


@project_router.post(
    "/{project_id}/members", response_model=InvitationResult, status_code=status.HTTP_201_CREATED
)
def invite_project_member(
    project_id: int,
    invite: MemberInvite,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    mailer: Mailer = Depends(get_mailer),
):
    """Invite by email. The membership stays even when the email cannot be sent."""
    ctx = RequestContext.for_user(current_user)
    member, invitation = memberships.invite_project_member(db, ctx, project_id, invite.email, invite.role)
    db.commit()
    db.refresh(member)

    notice = memberships.notify_invitee(
        mailer, member.email, member.project.title, member.role, current_user, accept_url(invitation.token)
    )
    return InvitationResult(
        member=ProjectMemberResponse.model_validate(member),
        email_sent=notice.email_sent,
        email_error=notice.email_error,
    )


@project_router.patch("/{project_id}/members/{member_id}", response_model=ProjectMemberResponse)
def update_project_member(
    project_id: int,
    member_id: int,
    update: MemberRoleUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    member = memberships.update_project_member_role(db, ctx, project_id, member_id, update.role, update.reason)
    db.commit()
    db.refresh(member)
    return member


@project_router.delete("/{project_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_project_member(
    project_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    memberships.remove_project_member(db, ctx, project_id, member_id)
    db.commit()


@project_router.post("/{project_id}/members/accept", response_model=ProjectMemberResponse)
def accept_project_invitation(
    project_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)
):
    member = memberships.accept_project_invitation(db, ctx, project_id)
    db.commit()
    db.refresh(member)
    return member


# -- collections ---------------------------------------------------------------


@collection_router.get("/{collection_id}/members", response_model=List[CollectionMemberResponse])
def list_collection_members(
    collection_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)
):
    collection = require_collection_capability(db, ctx, collection_id)
    viewer = get_collection_permissions(db, ctx, collection)
    return [
        _member_view(CollectionMemberResponse, ctx, viewer, member)
        for member in memberships.list_collection_members(db, ctx, collection.id)
    ]


@collection_router.post(
    "/{collection_id}/members", response_model=CollectionInvitationResult, status_code=status.HTTP_201_CREATED
)
def invite_collection_member(
    collection_id: int,
    invite: MemberInvite,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    mailer: Mailer = Depends(get_mailer),
):
    """Same as project invites, without a sign-up token."""
    ctx = RequestContext.for_user(current_user)
    member = memberships.invite_collection_member(db, ctx, collection_id, invite.email, invite.role)
    db.commit()
    db.refresh(member)

    notice = memberships.notify_invitee(
        mailer,
        member.email,
        member.collection.title,
        member.role,
        current_user,
        f"{settings.FRONTEND_URL.rstrip('/')}/collections/{member.collection_id}",
    )
    return CollectionInvitationResult(
        member=CollectionMemberResponse.model_validate(member),
        email_sent=notice.email_sent,
        email_error=notice.email_error,
    )


@collection_router.patch("/{collection_id}/members/{member_id}", response_model=CollectionMemberResponse)
def update_collection_member(
    collection_id: int,
    member_id: int,
    update: MemberRoleUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    member = memberships.update_collection_member_role(
        db, ctx, collection_id, member_id, update.role, update.reason
    )
    db.commit()
    db.refresh(member)
    return member


@collection_router.delete("/{collection_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_collection_member(
    collection_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    memberships.remove_collection_member(db, ctx, collection_id, member_id)
    db.commit()


@collection_router.post("/{collection_id}/members/accept", response_model=CollectionMemberResponse)
def accept_collection_invitation(
    collection_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_request_context)
):
    member = memberships.accept_collection_invitation(db, ctx, collection_id)
    db.commit()
    db.refresh(member)
    return member
