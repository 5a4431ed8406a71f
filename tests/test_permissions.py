from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

import seshprep.api.v1.projects as project_routes
from seshprep.context import RequestContext
from seshprep.errors import AccessDenied, NotAuthenticated, NotFound
from seshprep.services import memberships
from seshprep.services.permissions import require_project_capability, resolve_permissions
from seshprep.services.roles import FULL_ACCESS, NO_ACCESS, capabilities_for_role, roles_with

ACCEPTED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _member(role, email="guest@example.com", user_id=None, accepted_at=ACCEPTED):
    return SimpleNamespace(role=role, email=email, user_id=user_id, accepted_at=accepted_at)


def _accepted_member(db: Session, project, producer, user, role):
    memberships.invite_project_member(db, RequestContext.for_user(producer), project.id, user.email, role)
    db.commit()
    member = memberships.accept_project_invitation(db, RequestContext.for_user(user), project.id)
    db.commit()
    return member


def test_anonymous_context_has_no_capabilities():
    assert resolve_permissions(RequestContext.anonymous(), 1, [_member("manager")]) == NO_ACCESS


def test_producer_has_every_capability():
    caps = resolve_permissions(RequestContext(account_id=7, email="p@example.com"), 7, [])
    assert caps == FULL_ACCESS
    assert caps.role == "producer"


def test_accepted_manager_matched_by_email_case_insensitively():
    ctx = RequestContext(account_id=3, email="guest@example.com")
    caps = resolve_permissions(ctx, 1, [_member("manager", email="  Guest@Example.COM ")])

    assert caps.role == "manager"
    assert caps.can_view and caps.can_comment and caps.can_edit_tasks
    assert not caps.can_manage_project
    assert not caps.can_invite_members
    assert not caps.can_delete_tasks


def test_membership_matched_by_user_id():
    ctx = RequestContext(account_id=3, email="other@example.com")
    caps = resolve_permissions(ctx, 1, [_member("artist", email="old@example.com", user_id=3)])
    assert caps.role == "artist"
    assert caps.can_view and caps.can_comment
    assert not caps.can_edit_tasks


def test_pending_invitation_grants_nothing():
    ctx = RequestContext(account_id=3, email="guest@example.com")
    assert resolve_permissions(ctx, 1, [_member("manager", accepted_at=None)]) == NO_ACCESS


@pytest.mark.parametrize("role", ["owner", "admin", "", None, "Manager"])
def test_unknown_roles_fail_closed(role):
    assert capabilities_for_role(role) == NO_ACCESS


def test_capability_table_is_fixed():
    assert roles_with("can_edit_tasks") == {"manager", "editor"}
    assert roles_with("can_view") == {"manager", "editor", "artist"}
    assert roles_with("can_invite_members") == frozenset()


def test_project_visibility_is_enforced_in_queries(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    artist = make_user("artist@example.com")
    stranger = make_user("stranger@example.com")
    project = make_project(producer)
    _accepted_member(db_session, project, producer, artist, "artist")

    assert [p.id for p in project_routes.list_projects(db_session, RequestContext.for_user(artist))] == [project.id]
    assert project_routes.list_projects(db_session, RequestContext.for_user(stranger)) == []

    with pytest.raises(NotFound):
        require_project_capability(db_session, RequestContext.for_user(stranger), project.id)
    with pytest.raises(AccessDenied):
        require_project_capability(db_session, RequestContext.for_user(artist), project.id, "can_edit_tasks")
    with pytest.raises(NotAuthenticated):
        require_project_capability(db_session, RequestContext.anonymous(), project.id)


def test_pending_member_cannot_see_project(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    invitee = make_user("invitee@example.com")
    project = make_project(producer)
    memberships.invite_project_member(
        db_session, RequestContext.for_user(producer), project.id, "invitee@example.com", "editor"
    )
    db_session.commit()

    with pytest.raises(NotFound):
        require_project_capability(db_session, RequestContext.for_user(invitee), project.id)


def test_permissions_endpoint_reports_role(db_session: Session, make_user, make_project):
    producer = make_user("producer@example.com")
    editor = make_user("editor@example.com")
    project = make_project(producer)
    _accepted_member(db_session, project, producer, editor, "editor")

    result = project_routes.read_project_permissions(project.id, db_session, RequestContext.for_user(editor))
    assert result.role == "editor"
    assert result.can_edit_tasks is True
    assert result.can_delete_tasks is False

    result = project_routes.read_project_permissions(project.id, db_session, RequestContext.for_user(producer))
    assert result.role == "producer"
    assert result.can_invite_members is True
