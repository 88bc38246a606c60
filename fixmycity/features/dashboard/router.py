from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from fixmycity.config.database import get_db
from fixmycity.features.auth.router import get_current_identity
from fixmycity.features.auth.service import Identity
from fixmycity.features.complaints.policy import capability_for
from fixmycity.features.complaints.schemas import ComplaintResponse
from fixmycity.models.complaint import Complaint, Status
from fixmycity.models.department import Department
from fixmycity.models.user import Role, User

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def _rate(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def _grouped(db: Session, column) -> dict:
    return {key: count for key, count in db.query(column, func.count(Complaint.id)).group_by(column).all()}


def scoped_stats(db: Session, scope) -> dict:
    counts = dict(
        db.query(Complaint.status, func.count(Complaint.id)).filter(*scope).group_by(Complaint.status).all()
    )
    total = sum(counts.values())
    return {
        "totalComplaints": total,
        "inProgressComplaints": counts.get(Status.IN_PROGRESS.value, 0),
        "resolvedComplaints": counts.get(Status.RESOLVED.value, 0),
        "pendingComplaints": counts.get(Status.SUBMITTED.value, 0),
    }


def system_stats(db: Session) -> dict:
    recent = (
        db.query(Complaint)
        .options(selectinload(Complaint.submitted_by), selectinload(Complaint.assigned_to), selectinload(Complaint.remark_entries))
        .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        .limit(5)
        .all()
    )
    return {
        "totalComplaints": db.query(func.count(Complaint.id)).scalar(),
        "totalUsers": db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar(),
        "totalDepartments": db.query(func.count(Department.id)).filter(Department.is_active.is_(True)).scalar(),
        "complaintsByStatus": _grouped(db, Complaint.status),
        "complaintsByPriority": _grouped(db, Complaint.priority),
        "complaintsByCategory": _grouped(db, Complaint.category),
        "recentComplaints": [ComplaintResponse.model_validate(complaint) for complaint in recent],
    }


@router.get("/stats")
def read_stats(db: Session = Depends(get_db), identity: Identity = Depends(get_current_identity)):
    if identity.role == Role.SUPER_ADMIN:
        return {"success": True, "data": system_stats(db)}

    stats = scoped_stats(db, capability_for(identity).read_scope(db, identity))
    rate_key = "successRate" if identity.role == Role.CITIZEN else "resolutionRate"
    stats[rate_key] = _rate(stats["resolvedComplaints"], stats["totalComplaints"])
    return {"success": True, "data": stats}
