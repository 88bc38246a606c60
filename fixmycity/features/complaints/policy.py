"""Role capabilities over complaints.

Every request resolves its caller's role to one ``Capability`` and asks it
three things: which complaints may be read, which may be changed through the
targeted update, and which fields the general edit may set. Scopes are lists
of SQLAlchemy criteria AND-ed into the query, so an out-of-scope id simply
matches nothing.
"""
from dataclasses import dataclass
from typing import Callable, FrozenSet, List

from sqlalchemy.orm import Session

from fixmycity.features.auth.service import Identity
from fixmycity.models.complaint import Complaint
from fixmycity.models.department import Department
from fixmycity.models.user import Role, User
from fixmycity.utils.errors import Forbidden, NotFound

DESCRIPTIVE_FIELDS = frozenset({"title", "description", "location", "coordinates", "images"})
MANAGED_FIELDS = DESCRIPTIVE_FIELDS | frozenset(
    {"category", "priority", "status", "assigned_to", "department", "resolution", "resolution_date"}
)


def resolve_admin_department(db: Session, identity: Identity) -> Department:
    """Load the department an admin belongs to.

    A missing user, or a missing or inactive department, is a hard failure
    and never a wider scope.
    """
    user = db.get(User, identity.user_id)
    if user is None:
        raise NotFound("User not found")
    department = db.get(Department, user.department_id) if user.department_id is not None else None
    if department is None or not department.is_active:
        raise NotFound("Department not found")
    return department


def citizen_scope(db: Session, identity: Identity) -> List:
    return [Complaint.submitted_by_id == identity.user_id]


def department_scope(db: Session, identity: Identity) -> List:
    department = resolve_admin_department(db, identity)
    return [Complaint.category == department.name]


def unrestricted_scope(db: Session, identity: Identity) -> List:
    return []


def no_write_scope(db: Session, identity: Identity) -> List:
    raise Forbidden()


@dataclass(frozen=True)
class Capability:
    read_scope: Callable[[Session, Identity], List]
    write_scope: Callable[[Session, Identity], List]
    editable_fields: FrozenSet[str]
    can_delete: bool = False
    # Citizens only get to edit complaints that are still open
    edit_open_only: bool = False


CAPABILITIES = {
    Role.CITIZEN: Capability(
        read_scope=citizen_scope,
        write_scope=no_write_scope,
        editable_fields=DESCRIPTIVE_FIELDS,
        edit_open_only=True,
    ),
    Role.ADMIN: Capability(
        read_scope=department_scope,
        write_scope=department_scope,
        editable_fields=MANAGED_FIELDS,
    ),
    Role.SUPER_ADMIN: Capability(
        read_scope=unrestricted_scope,
        write_scope=unrestricted_scope,
        editable_fields=MANAGED_FIELDS,
        can_delete=True,
    ),
}


def capability_for(identity: Identity) -> Capability:
    return CAPABILITIES[identity.role]


def filter_editable(capability: Capability, changes: dict) -> dict:
    """Keep only the fields the role may set; anything else is dropped silently."""
    return {field: value for field, value in changes.items() if field in capability.editable_fields}
