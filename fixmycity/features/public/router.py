from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fixmycity.config.database import get_db
from fixmycity.models.complaint import CATEGORIES
from fixmycity.models.department import Department

router = APIRouter(prefix="/public", tags=["Public"])


@router.get("/categories")
def read_categories(db: Session = Depends(get_db)):
    """Categories claimed by active departments, for the submission form."""
    claimed = set()
    for (categories,) in db.query(Department.categories).filter(Department.is_active.is_(True)).all():
        for category in categories or []:
            if isinstance(category, str) and category.strip():
                claimed.add(category)

    # No department has declared anything yet: offer the full list
    data = sorted(claimed) if claimed else list(CATEGORIES)
    return {"success": True, "data": data}


@router.get("/departments")
def read_departments(db: Session = Depends(get_db)):
    departments = (
        db.query(Department.id, Department.name)
        .filter(Department.is_active.is_(True))
        .order_by(Department.name)
        .all()
    )
    return {"success": True, "data": [{"id": d.id, "name": d.name} for d in departments]}
