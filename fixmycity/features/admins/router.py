from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fixmycity.config.database import get_db
from fixmycity.config.settings import Settings, get_settings
from fixmycity.features.auth.router import require_roles
from fixmycity.features.auth.service import Identity
from fixmycity.features.users.schemas import EmailAddress, UserResponse
from fixmycity.features.users.service import create_user, ensure_email_available
from fixmycity.models.department import Department
from fixmycity.models.user import Role
from fixmycity.utils.errors import NotFound

router = APIRouter(prefix="/admins", tags=["Admins"])


class AdminCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailAddress
    password: str = Field(min_length=1)
    department: str = Field(min_length=1) # department name


@router.post("")
def create_admin(
    payload: AdminCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: Identity = Depends(require_roles(Role.SUPER_ADMIN)),
):
    ensure_email_available(db, payload.email)
    department = db.query(Department).filter(Department.name == payload.department.strip()).first()
    if department is None:
        raise NotFound("Department not found")

    user = create_user(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=Role.ADMIN,
        rounds=settings.BCRYPT_ROUNDS,
        department=department,
    )
    return {"success": True, "user": UserResponse.model_validate(user)}
