from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email


def check_email(value: str) -> str:
    # Format is validated, but the address is stored and matched exactly as given
    validate_email(value)
    return value


EmailAddress = Annotated[str, AfterValidator(check_email)]


class CamelModel(BaseModel):
    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


class UserSummary(CamelModel):
    id: int
    name: str
    email: str


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role: str
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
