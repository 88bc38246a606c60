from fixmycity.models.complaint import CATEGORIES
from fixmycity.models.department import Department
from fixmycity.models.user import Role


def _department_body(head_id, **overrides):
    body = {
        "name": "Street Lighting",
        "description": "Keeps the city lit",
        "head": head_id,
        "categories": ["Street Lighting", "Traffic Management"],
    }
    body.update(overrides)
    return body


def test_list_departments_when_empty(client, factory, super_admin):
    response = client.get("/departments", headers=factory.headers(super_admin))
    assert response.status_code == 200
    body = response.json()
    assert body["data"] == []
    assert body["count"] == 0
    assert body["message"] == "No departments found"


def test_list_departments_requires_super_admin(client, factory):
    admin = factory.admin("Street Lighting")
    assert client.get("/departments", headers=factory.headers(admin)).status_code == 403


def test_create_department_links_head(client, factory, super_admin):
    head = factory.user(name="Lena", role=Role.ADMIN)
    member = factory.user(name="Max", role=Role.ADMIN)
    response = client.post(
        "/departments",
        json=_department_body(head, members=[member]),
        headers=factory.headers(super_admin),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Department created successfully"
    assert body["data"]["head"]["id"] == head
    assert [m["id"] for m in body["data"]["members"]] == [member]
    assert body["data"]["categories"] == ["Street Lighting", "Traffic Management"]
    assert body["data"]["totalComplaints"] == 0

    assert factory.get_user(head).department_id == body["data"]["id"]


def test_create_department_rejects_non_admin_head(client, factory, super_admin):
    citizen = factory.user(name="Alice")
    response = client.post("/departments", json=_department_body(citizen), headers=factory.headers(super_admin))
    assert response.status_code == 400
    assert response.json() == {"error": "Head must be an admin user"}
    assert factory.get_department("Street Lighting") is None
    assert factory.get_user(citizen).department_id is None


def test_create_department_rejects_unknown_member(client, factory, super_admin):
    head = factory.user(role=Role.ADMIN)
    response = client.post(
        "/departments",
        json=_department_body(head, members=[9999]),
        headers=factory.headers(super_admin),
    )
    assert response.status_code == 400
    assert factory.get_department("Street Lighting") is None


def test_create_department_rejects_duplicate_name(client, factory, super_admin):
    factory.admin("Street Lighting")
    head = factory.user(role=Role.ADMIN)
    response = client.post("/departments", json=_department_body(head), headers=factory.headers(super_admin))
    assert response.status_code == 409
    assert response.json() == {"error": "Department with this name already exists"}


def test_create_department_rejects_blank_name(client, factory, super_admin):
    head = factory.user(role=Role.ADMIN)
    response = client.post("/departments", json=_department_body(head, name="   "), headers=factory.headers(super_admin))
    assert response.status_code == 400
    assert "name" in response.json()["error"]
    with factory.database.session() as db:
        assert db.query(Department).count() == 0
    assert factory.get_user(head).department_id is None


def test_create_department_rejects_unknown_category(
client, factory, super_admin):
    head = factory.user(role=Role.ADMIN)
    response = client.post(
        "/departments",
        json=_department_body(head, categories=["Potholes"]),
        headers=factory.headers(super_admin),
    )
    assert response.status_code == 400
    assert "Potholes" in response.json()["error"]


def test_list_departments_with_stats(client, factory, super_admin):
    factory.admin("Street Lighting", ["Street Lighting", "Traffic Management"])
    citizen = factory.user()
    factory.complaint(citizen, category="Street Lighting", status="submitted")
    factory.complaint(citizen, category="Traffic Management", status="resolved")
    factory.complaint(citizen, category="Public Health", status="submitted")

    response = client.get("/departments", headers=factory.headers(super_admin))
    body = response.json()
    assert body["count"] == 1
    department = body["data"][0]
    assert department["name"] == "Street Lighting"
    assert department["totalComplaints"] == 2
    assert department["resolvedComplaints"] == 1
    assert department["pendingComplaints"] == 1
    assert body["metadata"] == {
        "totalComplaintsInDB": 3,
        "departmentNamesInDB": ["Street Lighting"],
        "categoryToDeptMapping": {"Street Lighting": "Street Lighting", "Traffic Management": "Street Lighting"},
    }


def test_department_categories_are_public(client, factory):
    factory.admin("Street Lighting", ["Traffic Management", "Street Lighting"])
    response = client.get("/departments/Street Lighting/categories")
    assert response.status_code == 200
    assert response.json()["data"] == ["Street Lighting", "Traffic Management"]

    response = client.get("/departments/Nowhere/categories")
    assert response.status_code == 404
    assert response.json() == {"error": "Department not found"}


def test_public_categories_fall_back_to_full_list(client):
    response = client.get("/public/categories")
    assert response.status_code == 200
    assert response.json()["data"] == CATEGORIES


def test_public_categories_from_departments(client, factory):
    factory.admin("Street Lighting", ["Street Lighting"])
    factory.admin("Public Works", ["Transportation", "Public Works"], name="Pat")
    response = client.get("/public/categories")
    assert response.json()["data"] == ["Public Works", "Street Lighting", "Transportation"]


def test_public_departments(client, factory):
    factory.admin("Street Lighting")
    factory.admin("Public Works", name="Pat")
    response = client.get("/public/departments")
    names = [item["name"] for item in response.json()["data"]]
    assert names == ["Public Works", "Street Lighting"]
