import enum
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from fixmycity.config.database import Base

CATEGORIES = [
    "Public Works",
    "Water & Sewage",
    "Transportation",
    "Parks & Recreation",
    "Building & Safety",
    "Environmental Services",
    "Public Health",
    "Street Lighting",
    "Waste Management",
    "Traffic Management",
]


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Status(str, enum.Enum):
    SUBMITTED = "submitted"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


OPEN_STATUSES = (Status.SUBMITTED.value, Status.IN_PROGRESS.value)
FINISHED_STATUSES = (Status.RESOLVED.value, Status.CLOSED.value)


class Complaint(Base):
    __tablename__ = "complaints"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True) # also the department routing key
    priority = Column(String, nullable=False)
    status = Column(String, nullable=False, default=Status.SUBMITTED.value, index=True)
    location = Column(String, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    images = Column(JSON, nullable=False, default=list)
    submitted_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    department = Column(String, nullable=True) # explicit override of the category routing
    resolution = Column(Text, nullable=True)
    resolution_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    submitted_by = relationship("User", foreign_keys=[submitted_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    remark_entries = relationship(
        "ComplaintRemark",
        order_by="ComplaintRemark.id",
        cascade="all, delete-orphan",
        back_populates="complaint",
    )

    @property
    def remarks(self):
        return [entry.text for entry in self.remark_entries]

    @property
    def coordinates(self):
        if self.latitude is None or self.longitude is None:
            return None
        return {"latitude": self.latitude, "longitude": self.longitude}


class ComplaintRemark(Base):
    """One entry of a complaint's append-only remark log."""

    __tablename__ = "complaint_remarks"

    id = Column(Integer, primary_key=True, index=True)
    complaint_id = Column(Integer, ForeignKey("complaints.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    complaint = relationship("Complaint", back_populates="remark_entries")
