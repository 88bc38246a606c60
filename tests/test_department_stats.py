from types import SimpleNamespace

from fixmycity.features.departments.stats import (
    build_category_map,
    compute_department_stats,
    resolve_department_name,
)

DEPARTMENTS = [
    {"name": "Public Works", "categories": ["Public Works", "Transportation"]},
    {"name": "Utilities", "categories": ["Water & Sewage"]},
    {"name": "Parks & Recreation", "categories": []},
]


def test_explicit_department_wins():
    complaint = {"department": "Utilities", "category": "Public Works"}
    assert resolve_department_name(complaint, DEPARTMENTS) == "Utilities"


def test_category_map_is_used_next():
    assert resolve_department_name({"category": "Transportation"}, DEPARTMENTS) == "Public Works"
    assert resolve_department_name({"category": "Water & Sewage"}, DEPARTMENTS) == "Utilities"


def test_last_department_claiming_a_category_wins():
    departments = DEPARTMENTS + [{"name": "Roads", "categories": ["Transportation"]}]
    assert build_category_map(departments)["Transportation"] == "Roads"
    assert resolve_department_name({"category": "Transportation"}, departments) == "Roads"


def test_name_match_ignores_case_and_padding():
    complaint = {"category": "  parks & recreation "}
    assert resolve_department_name(complaint, DEPARTMENTS) == "Parks & Recreation"


def test_unmatched_category_is_returned_as_is():
    assert resolve_department_name({"category": "Public Health"}, DEPARTMENTS) == "Public Health"


def test_missing_category():
    assert resolve_department_name({"category": None}, DEPARTMENTS) is None


def test_accepts_objects_as_well_as_dicts():
    department = SimpleNamespace(name="Utilities", categories=["Water & Sewage"])
    complaint = SimpleNamespace(department=None, category="Water & Sewage")
    assert resolve_department_name(complaint, [department]) == "Utilities"


def test_compute_stats_counts_by_status():
    complaints = [
        {"category": "Public Works", "status": "submitted"},
        {"category": "Transportation", "status": "in-progress"},
        {"category": "Transportation", "status": "resolved"},
        {"category": "Water & Sewage", "status": "closed"},
        {"category": "Parks & Recreation", "status": "submitted", "department": "public works"},
        {"category": "Public Health", "status": "submitted"},
    ]
    stats = compute_department_stats(complaints, DEPARTMENTS)
    assert stats == {
        "Public Works": {"total": 4, "resolved": 1, "pending": 3},
        "Utilities": {"total": 1, "resolved": 1, "pending": 0},
        "Parks & Recreation": {"total": 0, "resolved": 0, "pending": 0},
    }


def test_compute_stats_without_departments():
    assert compute_department_stats([{"category": "Public Works", "status": "submitted"}], []) == {}
