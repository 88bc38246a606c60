import logging
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

from fixmycity.features.auth.service import Identity
from fixmycity.features.complaints.policy import Capability, filter_editable
from fixmycity.features.complaints.schemas import ComplaintCreate, ComplaintEdit, ComplaintTargetedUpdate
from fixmycity.models.complaint import OPEN_STATUSES, Complaint, ComplaintRemark, Status
from fixmycity.models.user import User
from fixmycity.utils.errors import Forbidden, NotFound, ValidationFailed, format_validation_errors

logger = logging.getLogger(__name__)

# Only consulted when ENFORCE_STATUS_TRANSITIONS is on
STATUS_TRANSITIONS = {
    Status.SUBMITTED.value: {Status.IN_PROGRESS.value, Status.RESOLVED.value, Status.CLOSED.value},
    Status.IN_PROGRESS.value: {Status.RESOLVED.value, Status.CLOSED.value},
    Status.RESOLVED.value: {Status.CLOSED.value, Status.IN_PROGRESS.value},
    Status.CLOSED.value: set(),
}

REQUIRED_FIELDS = ("title", "description", "location", "category", "priority", "status")

TARGETED_FIELDS = {
    "status": "status",
    "assigned_to": "assigned_to_id",
    "department": "department",
    "resolution": "resolution",
    "resolution_date": "resolution_date",
}


def check_status_transition(current: str, new: str, enforce: bool):
    if not enforce or current == new:
        return
    if new not in STATUS_TRANSITIONS.get(current, set()):
        raise ValidationFailed(f"Cannot change status from {current} to {new}")


def format_remark(text: str, date_format: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{now.strftime(date_format)}: {text}"


def _with_people(query):
    return query.options(
        selectinload(Complaint.submitted_by),
        selectinload(Complaint.assigned_to),
        selectinload(Complaint.remark_entries),
    )


def load_complaint(db: Session, complaint_id: int, scope: List) -> Complaint:
    complaint = (
        _with_people(db.query(Complaint))
        .filter(Complaint.id == complaint_id, *scope)
        .populate_existing()
        .first()
    )
    if complaint is None:
        raise NotFound("Complaint not found")
    return complaint


def list_complaints(
    db: Session,
    scope: List,
    status: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Complaint], int]:
    # Filters narrow the role scope; they can never widen it
    criteria = list(scope)
    if status:
        criteria.append(Complaint.status == status)
    if category:
        criteria.append(Complaint.category == category)
    if priority:
        criteria.append(Complaint.priority == priority)

    query = db.query(Complaint).filter(*criteria)
    total = query.count()
    items = (
        _with_people(query)
        .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def create_complaint(db: Session, identity: Identity, payload: ComplaintCreate) -> Complaint:
    complaint = Complaint(
        title=payload.title,
        description=payload.description,
        category=payload.category,
        priority=payload.priority.value,
        status=Status.SUBMITTED.value,
        location=payload.location,
        latitude=payload.coordinates.latitude if payload.coordinates else None,
        longitude=payload.coordinates.longitude if payload.coordinates else None,
        images=payload.image_urls,
        submitted_by_id=identity.user_id,
    )
    db.add(complaint)
    db.commit()
    logger.info("Complaint created", extra={"complaint_id": complaint.id, "user_id": identity.user_id})
    return load_complaint(db, complaint.id, [])


def _ensure_user_exists(db: Session, user_id: Optional[int]):
    if user_id is not None and db.get(User, user_id) is None:
        raise ValidationFailed("Assigned user not found")


def apply_targeted_update(
    db: Session,
    identity: Identity,
    capability: Capability,
    payload: ComplaintTargetedUpdate,
    date_format: str,
    enforce_transitions: bool = False,
) -> Complaint:
    """Set status/assignment/resolution fields and append a remark in one transaction.

    The UPDATE carries the caller's write scope in its WHERE clause, so a
    complaint outside that scope matches no row and nothing is written.
    """
    scope = capability.write_scope(db, identity)

    values = {}
    for field, column in TARGETED_FIELDS.items():
        value = getattr(payload, field)
        if value is None or value == "":
            continue
        values[column] = value.value if isinstance(value, Status) else value

    _ensure_user_exists(db, values.get("assigned_to_id"))

    if enforce_transitions and "status" in values:
        current = db.query(Complaint.status).filter(Complaint.id == payload.id, *scope).scalar()
        if current is None:
            raise NotFound("Complaint not found")
        check_status_transition(current, values["status"], enforce=True)

    values["updated_at"] = datetime.utcnow()
    statement = (
        update(Complaint)
        .where(Complaint.id == payload.id, *scope)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(statement)
    if result.rowcount == 0:
        db.rollback()
        raise NotFound("Complaint not found")

    if payload.remark:
        db.add(ComplaintRemark(complaint_id=payload.id, text=format_remark(payload.remark, date_format)))
    db.commit()
    db.expire_all()

    logger.info(
        "Complaint updated",
        extra={"complaint_id": payload.id, "user_id": identity.user_id, "fields": sorted(values)},
    )
    return load_complaint(db, payload.id, [])


def parse_edit(capability: Capability, body: dict) -> ComplaintEdit:
    """Drop keys the role may not set, then validate what is left."""
    named = {}
    for key, value in (body or {}).items():
        field = ComplaintEdit.field_for_key(key)
        if field is not None:
            named[field] = value
    allowed = filter_editable(capability, named)

    for field in REQUIRED_FIELDS:
        if field in allowed and allowed[field] is None:
            raise ValidationFailed(f"{field}: cannot be empty")
    try:
        return ComplaintEdit.model_validate(allowed)
    except ValidationError as exc:
        raise ValidationFailed(format_validation_errors(exc.errors()))


def apply_general_edit(
    db: Session,
    identity: Identity,
    capability: Capability,
    complaint_id: int,
    body: dict,
    enforce_transitions: bool = False,
) -> Complaint:
    edit = parse_edit(capability, body)
    complaint = load_complaint(db, complaint_id, capability.read_scope(db, identity))

    if capability.edit_open_only and complaint.status not in OPEN_STATUSES:
        raise Forbidden("Complaint can no longer be edited")

    for field in edit.model_fields_set:
        value = getattr(edit, field)
        if field == "coordinates":
            complaint.latitude = value.latitude if value else None
            complaint.longitude = value.longitude if value else None
        elif field == "images":
            complaint.images = [str(url) for url in value] if value else []
        elif field == "assigned_to":
            _ensure_user_exists(db, value)
            complaint.assigned_to_id = value
        elif field == "status":
            check_status_transition(complaint.status, value.value, enforce_transitions)
            complaint.status = value.value
        elif field == "priority":
            complaint.priority = value.value
        else:
            setattr(complaint, field, value)

    db.commit()
    logger.info(
        "Complaint edited",
        extra={"complaint_id": complaint_id, "user_id": identity.user_id, "fields": sorted(edit.model_fields_set)},
    )
    return load_complaint(db, complaint_id, [])


def delete_complaint(db: Session, capability: Capability, complaint_id: int):
    if not capability.can_delete:
        raise Forbidden()
    complaint = db.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFound("Complaint not found")
    db.delete(complaint)
    db.commit()
