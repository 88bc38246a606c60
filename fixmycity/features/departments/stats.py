"""Map complaints onto departments for statistics.

Complaints store a category string rather than a department reference, so
the owning department is worked out at read time. The resolution order is:

1. the complaint's explicit ``department`` override;
2. the department whose ``categories`` list claims the complaint's category
   (when several claim it, the one listed last wins);
3. a department whose name equals the category, ignoring case and
   surrounding whitespace;
4. the category itself, used as a synthetic department name.

Everything here is a pure function of its inputs.
"""
from typing import Dict, Iterable, List, Optional

from fixmycity.models.complaint import FINISHED_STATUSES, OPEN_STATUSES


def _get(record, key):
    if isinstance(record, dict):
        return record.get(key)
    return getattr(record, key, None)


def _normalize(value: str) -> str:
    return value.strip().lower()


def build_category_map(departments: Iterable) -> Dict[str, str]:
    mapping = {}
    for department in departments:
        for category in _get(department, "categories") or []:
            mapping[category] = _get(department, "name")
    return mapping


def resolve_department_name(complaint, departments: List, category_map: Optional[Dict[str, str]] = None) -> Optional[str]:
    explicit = _get(complaint, "department")
    if explicit:
        return explicit

    category = _get(complaint, "category")
    if not category:
        return None

    if category_map is None:
        category_map = build_category_map(departments)
    if category in category_map:
        return category_map[category]

    wanted = _normalize(category)
    for department in departments:
        name = _get(department, "name")
        if name and _normalize(name) == wanted:
            return name

    return category


def compute_department_stats(complaints: Iterable, departments: List) -> Dict[str, Dict[str, int]]:
    """Return ``{department name: {total, resolved, pending}}`` for every department.

    A resolved name that differs from a department's only by case or padding
    is counted for that department. Names matching no department are skipped.
    """
    category_map = build_category_map(departments)
    names = [_get(department, "name") for department in departments]
    by_normalized = {_normalize(name): name for name in names if name}

    stats = {name: {"total": 0, "resolved": 0, "pending": 0} for name in names}
    for complaint in complaints:
        name = resolve_department_name(complaint, departments, category_map)
        if name not in stats:
            name = by_normalized.get(_normalize(name)) if name else None
            if name is None:
                continue
        bucket = stats[name]
        bucket["total"] += 1
        status = _get(complaint, "status")
        if status in FINISHED_STATUSES:
            bucket["resolved"] += 1
        elif status in OPEN_STATUSES:
            bucket["pending"] += 1
    return stats
