from pydantic import BaseModel, EmailStr, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from typing import Optional
from datetime import datetime

_email_adapter = TypeAdapter(EmailStr)


def validate_email(value: str) -> str:
    """
    Check that value is an email address and return it unchanged.

    Unlike EmailStr, the domain part keeps its original case.
    """
    email = value.strip()
    try:
        _email_adapter.validate_python(email)
    except PydanticValidationError:
        raise ValueError(f"{value!r} is not a valid email address")
    return email


class VendorResponse(BaseModel):
    id: int
    name: str
    address: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class CreateVendorInput(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return validate_email(value)
