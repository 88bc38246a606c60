import math
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from fixmycity.config.database import get_db
from fixmycity.config.settings import Settings, get_settings
from fixmycity.features.auth.router import get_current_identity
from fixmycity.features.auth.service import Identity
from fixmycity.features.complaints import service
from fixmycity.features.complaints.policy import Capability, capability_for
from fixmycity.features.complaints.schemas import ComplaintCreate, ComplaintResponse, ComplaintTargetedUpdate
from fixmycity.models.complaint import Priority, Status

router = APIRouter(prefix="/complaints", tags=["Complaints"])


def get_capability(identity: Identity = Depends(get_current_identity)) -> Capability:
    return capability_for(identity)


def _envelope(complaint) -> dict:
    return {"success": True, "data": ComplaintResponse.model_validate(complaint)}


@router.get("")
def read_complaints(
    status: Optional[Status] = None,
    category: Optional[str] = None,
    priority: Optional[Priority] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    capability: Capability = Depends(get_capability),
):
    items, total = service.list_complaints(
        db,
        capability.read_scope(db, identity),
        status=status.value if status else None,
        category=category,
        priority=priority.value if priority else None,
        page=page,
        limit=limit,
    )
    return {
        "success": True,
        "data": [ComplaintResponse.model_validate(item) for item in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@router.post("")
def create_complaint(
    payload: ComplaintCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return _envelope(service.create_complaint(db, identity, payload))


@router.patch("")
def update_complaint(
    payload: ComplaintTargetedUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    identity: Identity = Depends(get_current_identity),
    capability: Capability = Depends(get_capability),
):
    complaint = service.apply_targeted_update(
        db,
        identity,
        capability,
        payload,
        date_format=settings.REMARK_DATE_FORMAT,
        enforce_transitions=settings.ENFORCE_STATUS_TRANSITIONS,
    )
    return _envelope(complaint)


@router.get("/{complaint_id}")
def read_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    capability: Capability = Depends(get_capability),
):
    return _envelope(service.load_complaint(db, complaint_id, capability.read_scope(db, identity)))


@router.put("/{complaint_id}")
def edit_complaint(
    complaint_id: int,
    body: dict = Body(...),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    identity: Identity = Depends(get_current_identity),
    capability: Capability = Depends(get_capability),
):
    complaint = service.apply_general_edit(
        db,
        identity,
        capability,
        complaint_id,
        body,
        enforce_transitions=settings.ENFORCE_STATUS_TRANSITIONS,
    )
    return _envelope(complaint)


@router.delete("/{complaint_id}")
def delete_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    capability: Capability = Depends(get_capability),
):
    service.delete_complaint(db, capability, complaint_id)
    return {"success": True, "message": "Complaint deleted successfully"}
