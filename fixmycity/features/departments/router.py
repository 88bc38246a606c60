from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from fixmycity.config.database import get_db
from fixmycity.features.auth.router import require_roles
from fixmycity.features.departments import service
from fixmycity.features.users.schemas import CamelModel, UserSummary
from fixmycity.models.complaint import CATEGORIES
from fixmycity.models.user import Role

router = APIRouter(prefix="/departments", tags=["Departments"])

EMPTY_STATS = {"total": 0, "resolved": 0, "pending": 0}


class DepartmentCreate(BaseModel):
    class Config:
        str_strip_whitespace = True

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    head: int
    members: List[int] = []
    categories: List[str] = []

    @field_validator("categories")
    @classmethod
    def known_categories(cls, value):
        unknown = [category for category in value if category not in CATEGORIES]
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(unknown)}")
        return value


class DepartmentResponse(CamelModel):
    id: int
    name: str
    description: str
    head: Optional[UserSummary] = None
    members: List[UserSummary] = []
    categories: List[str] = []
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    total_complaints: int = 0
    resolved_complaints: int = 0
    pending_complaints: int = 0


def _department_response(department, stats=None) -> DepartmentResponse:
    stats = stats or EMPTY_STATS
    response = DepartmentResponse.model_validate(department)
    return response.model_copy(update={
        "total_complaints": stats["total"],
        "resolved_complaints": stats["resolved"],
        "pending_complaints": stats["pending"],
    })


@router.get("")
def read_departments(db: Session = Depends(get_db), admin=Depends(require_roles(Role.SUPER_ADMIN))):
    departments, stats, metadata = service.department_overview(db)
    data = [_department_response(department, stats.get(department.name)) for department in departments]
    body = {"success": True, "data": data, "count": len(data), "metadata": metadata}
    if not data:
        body["message"] = "No departments found"
    return body


@router.post("")
def create_department(
    payload: DepartmentCreate,
    db: Session = Depends(get_db),
    admin=Depends(require_roles(Role.SUPER_ADMIN)),
):
    department = service.create_department(
        db,
        name=payload.name,
        description=payload.description,
        head_id=payload.head,
        member_ids=payload.members,
        categories=payload.categories,
    )
    return {
        "success": True,
        "data": _department_response(department),
        "message": "Department created successfully",
    }


@router.get("/{name}/categories")
def read_department_categories(name: str, db: Session = Depends(get_db)):
    department = service.get_department_by_name(db, name)
    return {"success": True, "data": sorted(department.categories or [])}
