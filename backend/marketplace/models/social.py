from pydantic import BaseModel
from typing import Optional


class FriendRequest(BaseModel):
    addressee_id: str


class SupportRequestCreate(BaseModel):
    subject: str
    description: str
    email: Optional[str] = None
    category: Optional[str] = None
    priority: str = "medium"


class SupportRequestUpdate(BaseModel):
    status: str
    resolution_notes: Optional[str] = None
