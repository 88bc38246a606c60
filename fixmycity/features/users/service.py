import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fixmycity.models.department import Department
from fixmycity.models.user import Role, User
from fixmycity.utils.errors import Conflict
from fixmycity.utils.security import get_password_hash

logger = logging.getLogger(__name__)


def ensure_email_available(db: Session, email: str):
    if db.query(User).filter(User.email == email).first():
        raise Conflict("User already exists with this email")


def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: Role,
    rounds: int,
    department: Optional[Department] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
) -> User:
    """Create a user; admins given a department also join its members.

    User row and membership are committed together.
    """
    ensure_email_available(db, email)
    user = User(
        name=name.strip(),
        email=email,
        hashed_password=get_password_hash(password, rounds=rounds),
        role=role.value,
        phone=phone,
        address=address,
        is_active=True,
    )
    if role == Role.ADMIN and department is not None:
        user.department_id = department.id
        if user not in department.members:
            department.members.append(user)
    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("User already exists with this email")
    db.refresh(user)

    logger.info("User created", extra={"user_id": user.id, "role": user.role})
    return user
