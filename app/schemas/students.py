from datetime import date

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from uuid import UUID

class StudentCreate(BaseModel):
    ref_id: str = Field(min_length=1, max_length=40)
    name: str = Field(min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    dob: Optional[date] = None
    status: str = "pending"
    documents: Optional[Dict[str, Any]] = None
    agent_id: Optional[UUID] = None
    staff_ids: List[UUID] = []

class StudentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    dob: Optional[date] = None
    status: Optional[str] = None
    documents: Optional[Dict[str, Any]] = None
    agent_id: Optional[UUID] = None
    staff_ids: Optional[List[UUID]] = None

class DocumentSearchIn(BaseModel):
    conditions: Dict[str, Any]
