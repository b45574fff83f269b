from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, Optional

class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=15)
    password: str = Field(min_length=6)
    role: str = "customer"
    status: str = "active"
    profile: Optional[Dict[str, Any]] = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: Optional[str]) -> Optional[str]:
        text = str(value or "").strip().lower()
        if not text:
            return None
        if "@" not in text:
            raise ValueError("The email field must be a valid email address.")
        return text

class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=15)
    status: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None
    profile: Optional[Dict[str, Any]] = None

class JsonFieldsDelete(BaseModel):
    fields: Dict[str, Any]
