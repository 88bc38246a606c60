import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from fixmycity.config.database import Base


class Role(str, enum.Enum):
    CITIZEN = "citizen"
    ADMIN = "admin"
    SUPER_ADMIN = "super-admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=Role.CITIZEN.value) # fixed at creation
    # departments.head_id points back here, so this side is added after both tables exist
    department_id = Column(
        Integer,
        ForeignKey("departments.id", use_alter=True, name="fk_users_department_id"),
        nullable=True,
    ) # admins only
    is_active = Column(Boolean, default=True, nullable=False)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assigned_department = relationship("Department", foreign_keys=[department_id], post_update=True)

    @property
    def department_name(self):
        return self.assigned_department.name if self.assigned_department else None
