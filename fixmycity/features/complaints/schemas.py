from datetime import datetime
from typing import List, Optional

from pydantic import AnyHttpUrl, BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from fixmycity.features.users.schemas import CamelModel, UserSummary
from fixmycity.models.complaint import CATEGORIES, Priority, Status

MAX_IMAGES = 5


class InputModel(BaseModel):
    class Config:
        populate_by_name = True
        alias_generator = to_camel
        str_strip_whitespace = True


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


def _check_category(value):
    if value is not None and value not in CATEGORIES:
        raise ValueError("Please select a valid department")
    return value


def _urls_as_text(value):
    if value is None:
        return value
    return [str(url) for url in value]


class ComplaintCreate(InputModel):
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=20, max_length=1000)
    category: str
    priority: Priority
    location: str = Field(min_length=5, max_length=200)
    coordinates: Optional[Coordinates] = None
    images: List[AnyHttpUrl] = Field(default_factory=list, max_length=MAX_IMAGES)

    check_category = field_validator("category")(_check_category)

    @property
    def image_urls(self) -> List[str]:
        return _urls_as_text(self.images)


class ComplaintEdit(InputModel):
    """General edit payload. Which of these a caller may set depends on its role."""

    title: Optional[str] = Field(None, min_length=5, max_length=100)
    description: Optional[str] = Field(None, min_length=20, max_length=1000)
    location: Optional[str] = Field(None, min_length=5, max_length=200)
    coordinates: Optional[Coordinates] = None
    images: Optional[List[AnyHttpUrl]] = Field(None, max_length=MAX_IMAGES)
    category: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    assigned_to: Optional[int] = None
    department: Optional[str] = None
    resolution: Optional[str] = Field(None, max_length=500)
    resolution_date: Optional[datetime] = None

    check_category = field_validator("category")(_check_category)

    @classmethod
    def field_for_key(cls, key: str) -> Optional[str]:
        for name, field in cls.model_fields.items():
            if key == name or key == field.alias:
                return name
        return None


class ComplaintTargetedUpdate(InputModel):
    id: int
    status: Optional[Status] = None
    assigned_to: Optional[int] = None
    department: Optional[str] = None
    resolution: Optional[str] = Field(None, max_length=500)
    resolution_date: Optional[datetime] = None
    remark: Optional[str] = Field(None, min_length=1, max_length=500)


class ComplaintResponse(CamelModel):
    id: int
    title: str
    description: str
    category: str
    priority: str
    status: str
    location: str
    coordinates: Optional[Coordinates] = None
    images: List[str] = []
    remarks: List[str] = []
    submitted_by: Optional[UserSummary] = None
    assigned_to: Optional[UserSummary] = None
    department: Optional[str] = None
    resolution: Optional[str] = None
    resolution_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
