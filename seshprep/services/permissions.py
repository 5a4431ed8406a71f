"""Permission resolution for projects and collections.

``resolve_permissions`` is the advisory computation used to decide which
affordances a client may show. It is not trusted for access decisions: every
route goes through ``require_project_capability`` /
``require_collection_capability``, which restate the same rules as SQL
predicates (producer owns the row OR an accepted membership whose role grants
the capability) so the database itself filters what a caller can touch.
"""
from typing import Iterable, Optional

from sqlalchemy import and_, false, func, or_
from sqlalchemy.orm import Session

from seshprep.context import RequestContext
from seshprep.errors import AccessDenied, NotAuthenticated, NotFound
from seshprep.models import Collection, CollectionMember, Project, ProjectMember
from seshprep.services.roles import (
    FULL_ACCESS,
    NO_ACCESS,
    ROLE_ADMIN_ROLES,
    Capabilities,
    capabilities_for_role,
    roles_with,
)


def _normalize_email(email: Optional[str]) -> Optional[str]:
    return email.strip().lower() if email else None


def find_membership(ctx: RequestContext, members: Iterable):
    """Membership row bound to the account, by user id or by email."""
    email = _normalize_email(ctx.email)
    for member in members:
        if member.user_id is not None and member.user_id == ctx.account_id:
            return member
        if email and _normalize_email(member.email) == email:
            return member
    return None


def resolve_permissions(ctx: RequestContext, producer_id, members: Iterable) -> Capabilities:
    """Effective capabilities of ``ctx`` on a project owned by ``producer_id``."""
    if not ctx.is_authenticated:
        return NO_ACCESS

    if ctx.account_id == producer_id:
        return FULL_ACCESS

    member = find_membership(ctx, members)
    if member is None or member.accepted_at is None:
        # pending invitations grant nothing
        return NO_ACCESS

    return capabilities_for_role(member.role)


def resolve_collection_permissions(ctx: RequestContext, owner_id, members: Iterable) -> Capabilities:
    return resolve_permissions(ctx, owner_id, members)


# -- data-access layer ---------------------------------------------------------


def _matches_account(model, ctx: RequestContext):
    clauses = [model.user_id == ctx.account_id]
    email = _normalize_email(ctx.email)
    if email:
        clauses.append(func.lower(model.email) == email)
    return or_(*clauses)


def accessible_projects_filter(ctx: RequestContext, capability: str = "can_view"):
    if not ctx.is_authenticated:
        return false()

    granted_roles = sorted(roles_with(capability))
    return or_(
        Project.producer_id == ctx.account_id,
        Project.members.any(
            and_(
                ProjectMember.accepted_at.isnot(None),
                ProjectMember.role.in_(granted_roles),
                _matches_account(ProjectMember, ctx),
            )
        ),
    )


def accessible_collections_filter(ctx: RequestContext, capability: str = "can_view"):
    if not ctx.is_authenticated:
        return false()

    granted_roles = sorted(roles_with(capability))
    return or_(
        Collection.owner_id == ctx.account_id,
        Collection.members.any(
            and_(
                CollectionMember.accepted_at.isnot(None),
                CollectionMember.role.in_(granted_roles),
                _matches_account(CollectionMember, ctx),
            )
        ),
    )


def require_project_capability(
    db: Session, ctx: RequestContext, project_id: int, capability: str = "can_view"
) -> Project:
    """Load a project only if ``ctx`` holds ``capability`` on it."""
    if not ctx.is_authenticated:
        raise NotAuthenticated("Not authenticated")

    project = (
        db.query(Project)
        .filter(Project.id == project_id, accessible_projects_filter(ctx, capability))
        .first()
    )
    if project is not None:
        return project

    # callers without view rights learn nothing about the project
    visible = (
        db.query(Project.id)
        .filter(Project.id == project_id, accessible_projects_filter(ctx))
        .first()
    )
    if visible is None:
        raise NotFound("Project not found")
    raise AccessDenied("You don't have permission to perform this action on the project")


def require_collection_capability(
    db: Session, ctx: RequestContext, collection_id: int, capability: str = "can_view"
) -> Collection:
    if not ctx.is_authenticated:
        raise NotAuthenticated("Not authenticated")

    collection = (
        db.query(Collection)
        .filter(Collection.id == collection_id, accessible_collections_filter(ctx, capability))
        .first()
    )
    if collection is not None:
        return collection

    visible = (
        db.query(Collection.id)
        .filter(Collection.id == collection_id, accessible_collections_filter(ctx))
        .first()
    )
    if visible is None:
        raise NotFound("Collection not found")
    raise AccessDenied("You don't have permission to perform this action on the collection")


def get_project_permissions(db: Session, ctx: RequestContext, project: Project) -> Capabilities:
    """Advisory capability set for ``project``, for the client to shape its UI."""
    if not ctx.is_authenticated:
        return NO_ACCESS
    members = (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project.id, _matches_account(ProjectMember, ctx))
        .all()
    )
    return resolve_permissions(ctx, project.producer_id, members)


def get_collection_permissions(db: Session, ctx: RequestContext, collection: Collection) -> Capabilities:
    if not ctx.is_authenticated:
        return NO_ACCESS
    members = (
        db.query(CollectionMember)
        .filter(CollectionMember.collection_id == collection.id, _matches_account(CollectionMember, ctx))
        .all()
    )
    return resolve_collection_permissions(ctx, collection.owner_id, members)


def require_member_admin(db: Session, ctx: RequestContext, project_id: int) -> Project:
    """Producer or accepted manager: may change roles and remove members."""
    project = require_project_capability(db, ctx, project_id)
    if project.producer_id == ctx.account_id:
        return project

    admin_membership = (
        db.query(ProjectMember.id)
        .filter(
            ProjectMember.project_id == project.id,
            ProjectMember.accepted_at.isnot(None),
            ProjectMember.role.in_(sorted(ROLE_ADMIN_ROLES)),
            _matches_account(ProjectMember, ctx),
        )
        .first()
    )
    if admin_membership is None:
        raise AccessDenied("Only the producer or a manager can manage members")
    return project


def require_collection_member_admin(db: Session, ctx: RequestContext, collection_id: int) -> Collection:
    collection = require_collection_capability(db, ctx, collection_id)
    if collection.owner_id == ctx.account_id:
        return collection

    admin_membership = (
        db.query(CollectionMember.id)
        .filter(
            CollectionMember.collection_id == collection.id,
            CollectionMember.accepted_at.isnot(None),
            CollectionMember.role.in_(sorted(ROLE_ADMIN_ROLES)),
            _matches_account(CollectionMember, ctx),
        )
        .first()
    )
    if admin_membership is None:
        raise AccessDenied("Only the owner or a manager can manage members")
    return collection
