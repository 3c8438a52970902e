from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LeadStatus = Literal["new", "contacted", "converted"]


class LeadCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=20)
    grade: Optional[str] = Field(default=None, max_length=10)
    subject: Optional[str] = Field(default=None, max_length=100)


class LeadUpdate(BaseModel):
    status: LeadStatus


class LeadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    grade: Optional[str] = None
    subject: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
