"""Role taxonomy and the fixed capability table."""
from dataclasses import dataclass, fields, replace
from typing import Dict, FrozenSet, Optional

from seshprep.models import CollectionRole, ProjectRole

CAPABILITY_NAMES = (
    "can_view",
    "can_comment",
    "can_edit_tasks",
    "can_manage_project",
    "can_invite_members",
    "can_delete_tasks",
)


@dataclass(frozen=True)
class Capabilities:
    can_view: bool = False
    can_comment: bool = False
    can_edit_tasks: bool = False
    can_manage_project: bool = False
    can_invite_members: bool = False
    can_delete_tasks: bool = False
    role: Optional[str] = None

    def allows(self, capability: str) -> bool:
        if capability not in CAPABILITY_NAMES:
            raise ValueError(f"Unknown capability {capability!r}")
        return bool(getattr(self, capability))

    def as_dict(self) -> Dict[str, object]:
        return {field.name: getattr(self, field.name) for field in fields(self)}


NO_ACCESS = Capabilities()

FULL_ACCESS = Capabilities(
    can_view=True,
    can_comment=True,
    can_edit_tasks=True,
    can_manage_project=True,
    can_invite_members=True,
    can_delete_tasks=True,
    role=ProjectRole.PRODUCER.value,
)

_EDITING = Capabilities(can_view=True, can_comment=True, can_edit_tasks=True)
_COMMENTING = Capabilities(can_view=True, can_comment=True)

# Membership roles only; producer is derived from ownership.
ROLE_CAPABILITIES: Dict[str, Capabilities] = {
    ProjectRole.MANAGER.value: replace(_EDITING, role=ProjectRole.MANAGER.value),
    ProjectRole.EDITOR.value: replace(_EDITING, role=ProjectRole.EDITOR.value),
    ProjectRole.ARTIST.value: replace(_COMMENTING, role=ProjectRole.ARTIST.value),
}

PROJECT_MEMBER_ROLES: FrozenSet[str] = frozenset(
    role.value for role in (ProjectRole.MANAGER, ProjectRole.ARTIST, ProjectRole.EDITOR)
)
COLLECTION_MEMBER_ROLES: FrozenSet[str] = frozenset(role.value for role in CollectionRole)

# Members allowed to change roles and remove other members.
ROLE_ADMIN_ROLES: FrozenSet[str] = frozenset({ProjectRole.MANAGER.value})


def capabilities_for_role(role: Optional[str]) -> Capabilities:
    """Capability set of a membership role; unknown values grant nothing."""
    return ROLE_CAPABILITIES.get(role or "", NO_ACCESS)


def roles_with(capability: str) -> FrozenSet[str]:
    """Membership roles whose table entry grants ``capability``."""
    return frozenset(role for role, caps in ROLE_CAPABILITIES.items() if caps.allows(capability))
