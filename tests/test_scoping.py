from datetime import datetime

import pytest

from fixmycity.features.auth.service import Identity
from fixmycity.features.complaints.policy import (
    CAPABILITIES,
    DESCRIPTIVE_FIELDS,
    MANAGED_FIELDS,
    capability_for,
    filter_editable,
    resolve_admin_department,
)
from fixmycity.features.complaints.service import check_status_transition, format_remark, parse_edit
from fixmycity.models.complaint import Complaint
from fixmycity.models.department import Department
from fixmycity.models.user import Role
from fixmycity.utils.errors import Forbidden, NotFound, ValidationFailed


def _identity(user_id, role):
    return Identity(user_id=user_id, email=f"user{user_id}@example.com", role=role)


def _visible_titles(factory, identity):
    capability = capability_for(identity)
    with factory.database.session() as db:
        scope = capability.read_scope(db, identity)
        return sorted(title for (title,) in db.query(Complaint.title).filter(*scope).all())


@pytest.fixture
def complaints(factory):
    alice = factory.user(name="Alice")
    bob = factory.user(name="Bob")
    factory.complaint(alice, category="Street Lighting", title="Dark corner")
    factory.complaint(bob, category="Street Lighting", title="Flickering lamp")
    factory.complaint(bob, category="Public Works", title="Pothole")
    return alice, bob


def test_citizen_scope_is_own_submissions(factory, complaints):
    alice, _ = complaints
    assert _visible_titles(factory, _identity(alice, Role.CITIZEN)) == ["Dark corner"]


def test_admin_scope_is_department_category(factory, complaints):
    admin = factory.admin("Street Lighting", ["Street Lighting"])
    assert _visible_titles(factory, _identity(admin, Role.ADMIN)) == ["Dark corner", "Flickering lamp"]


def test_super_admin_scope_is_unrestricted(factory, complaints):
    root = factory.user(role=Role.SUPER_ADMIN)
    assert _visible_titles(factory, _identity(root, Role.SUPER_ADMIN)) == ["Dark corner", "Flickering lamp", "Pothole"]


def test_admin_department_lookup_failures(factory):
    with factory.database.session() as db:
        with pytest.raises(NotFound, match="User not found"):
            resolve_admin_department(db, _identity(4242, Role.ADMIN))

    orphan = factory.user(role=Role.ADMIN)
    with factory.database.session() as db:
        with pytest.raises(NotFound, match="Department not found"):
            resolve_admin_department(db, _identity(orphan, Role.ADMIN))


def test_inactive_department_is_not_found(client, factory, complaints):
    admin = factory.admin("Street Lighting", ["Street Lighting"])
    with factory.database.session() as db:
        department = db.get(Department, factory.get_user(admin).department_id)
        department.is_active = False
        db.commit()

    with factory.database.session() as db:
        with pytest.raises(NotFound, match="Department not found"):
            resolve_admin_department(db, _identity(admin, Role.ADMIN))

    response = client.get("/complaints", headers=factory.headers(admin))
    assert response.status_code == 404
    assert response.json() == {"error": "Department not found"}


def test_citizen_has_no_write_scope(factory):
    citizen = factory.user()
    identity = _identity(citizen, Role.CITIZEN)
    with factory.database.session() as db:
        with pytest.raises(Forbidden):
            capability_for(identity).write_scope(db, identity)


def test_capability_table():
    assert CAPABILITIES[Role.CITIZEN].editable_fields == DESCRIPTIVE_FIELDS
    assert CAPABILITIES[Role.ADMIN].editable_fields == MANAGED_FIELDS
    assert CAPABILITIES[Role.SUPER_ADMIN].can_delete
    assert not CAPABILITIES[Role.ADMIN].can_delete
    assert CAPABILITIES[Role.CITIZEN].edit_open_only


def test_filter_editable_drops_disallowed_fields():
    changes = {"title": "New title", "status": "closed", "assigned_to": 3}
    assert filter_editable(CAPABILITIES[Role.CITIZEN], changes) == {"title": "New title"}
    assert filter_editable(CAPABILITIES[Role.ADMIN], changes) == changes


def test_parse_edit_accepts_camel_case_keys():
    edit = parse_edit(CAPABILITIES[Role.ADMIN], {"assignedTo": 3, "resolutionDate": "2026-01-02T00:00:00", "bogus": 1})
    assert edit.model_fields_set == {"assigned_to", "resolution_date"}
    assert edit.assigned_to == 3


def test_parse_edit_for_citizen_ignores_status():
    edit = parse_edit(CAPABILITIES[Role.CITIZEN], {"status": "closed"})
    assert edit.model_fields_set == set()


def test_status_transition_check():
    check_status_transition("closed", "submitted", enforce=False)
    check_status_transition("submitted", "submitted", enforce=True)
    check_status_transition("resolved", "in-progress", enforce=True)
    with pytest.raises(ValidationFailed):
        check_status_transition("closed", "in-progress", enforce=True)


def test_format_remark():
    assert format_remark("inspected on site", "%m/%d/%Y", now=datetime(2026, 3, 7)) == "03/07/2026: inspected on site"
