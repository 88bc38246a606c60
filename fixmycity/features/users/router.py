import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, selectinload

from fixmycity.config.database import get_db
from fixmycity.config.settings import Settings, get_settings
from fixmycity.features.auth.router import get_current_identity, require_roles
from fixmycity.features.auth.service import Identity
from fixmycity.features.users.schemas import EmailAddress, UserResponse
from fixmycity.features.users.service import create_user
from fixmycity.models.department import Department
from fixmycity.models.user import Role, User
from fixmycity.utils.errors import NotFound, ValidationFailed

router = APIRouter(prefix="/users", tags=["Users"])


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailAddress
    password: str = Field(min_length=1)
    role: Role
    department: Optional[int] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class ProfileUpdate(BaseModel):
    # Only the owner's contact details; role, email and department stay fixed
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None


def _load_user(db: Session, user_id: int) -> User:
    user = db.query(User).options(selectinload(User.assigned_department)).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User not found")
    return user


@router.get("/me")
def read_me(db: Session = Depends(get_db), identity: Identity = Depends(get_current_identity)):
    return {"success": True, "data": UserResponse.model_validate(_load_user(db, identity.user_id))}


@router.patch("/me")
def update_me(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    user = _load_user(db, identity.user_id)
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes:
        if changes["name"] is None:
            raise ValidationFailed("name: cannot be empty")
        user.name = changes["name"].strip()
    if "phone" in changes:
        user.phone = changes["phone"] or None
    if "address" in changes:
        user.address = changes["address"] or None
    db.commit()
    return {"success": True, "data": UserResponse.model_validate(_load_user(db, identity.user_id))}


@router.get("")
def read_users(
    role: Optional[Role] = None,
    department: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_roles(Role.SUPER_ADMIN)),
):
    query = db.query(User).filter(User.is_active.is_(True))
    if role:
        query = query.filter(User.role == role.value)
    if department is not None:
        query = query.filter(User.department_id == department)

    total = query.count()
    users = (
        query.options(selectinload(User.assigned_department))
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "data": [UserResponse.model_validate(user) for user in users],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@router.post("")
def create_user_account(
    payload: UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: Identity = Depends(require_roles(Role.SUPER_ADMIN)),
):
    department = None
    if payload.role == Role.ADMIN and payload.department is not None:
        department = db.get(Department, payload.department)
        if department is None:
            raise ValidationFailed("Department not found")

    user = create_user(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        rounds=settings.BCRYPT_ROUNDS,
        department=department,
        phone=payload.phone,
        address=payload.address,
    )
    return {"success": True, "data": UserResponse.model_validate(_load_user(db, user.id))}
