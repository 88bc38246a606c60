import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from fixmycity.features.departments.stats import build_category_map, compute_department_stats
from fixmycity.models.complaint import Complaint
from fixmycity.models.department import Department
from fixmycity.models.user import Role, User
from fixmycity.utils.errors import Conflict, NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def active_departments(db: Session) -> List[Department]:
    return (
        db.query(Department)
        .options(selectinload(Department.head), selectinload(Department.members))
        .filter(Department.is_active.is_(True))
        .order_by(Department.name)
        .all()
    )


def department_overview(db: Session):
    """Active departments with complaint counts, plus the mapping used to compute them."""
    departments = active_departments(db)
    complaints = db.query(Complaint.department, Complaint.category, Complaint.status).all()
    stats = compute_department_stats([row._asdict() for row in complaints], departments)
    metadata = {
        "totalComplaintsInDB": len(complaints),
        "departmentNamesInDB": [department.name for department in departments],
        "categoryToDeptMapping": build_category_map(departments),
    }
    return departments, stats, metadata


def get_department_by_name(db: Session, name: str) -> Department:
    department = db.query(Department).filter(
        Department.name == name.strip(),
        Department.is_active.is_(True),
    ).first()
    if department is None:
        raise NotFound("Department not found")
    return department


def create_department(db: Session, name: str, description: str, head_id: int, member_ids: List[int], categories: List[str]) -> Department:
    """Create a department and point its head admin at it.

    Both writes share one transaction: a failure leaves neither behind.
    """
    name = name.strip()
    if db.query(Department).filter(Department.name == name).first():
        raise Conflict("Department with this name already exists")

    head = db.get(User, head_id)
    if head is None or head.role != Role.ADMIN.value:
        raise ValidationFailed("Head must be an admin user")

    members = []
    if member_ids:
        members = db.query(User).filter(User.id.in_(member_ids)).all()
        if len(members) != len(set(member_ids)):
            raise ValidationFailed("One or more members do not exist")

    department = Department(
        name=name,
        description=description.strip(),
        head=head,
        members=members,
        categories=list(dict.fromkeys(categories or [])),
    )
    try:
        db.add(department)
        db.flush()
        head.department_id = department.id
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Department with this name already exists")

    logger.info("Department created", extra={"department_id": department.id, "head_id": head.id})
    return department
