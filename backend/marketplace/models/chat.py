from pydantic import BaseModel
from typing import Optional


class MessageCreate(BaseModel):
    message: str
    book_recommendation_id: Optional[str] = None


class WarningCreate(BaseModel):
    user_id: str
    reason: str
    message_id: Optional[str] = None
    expires_in_days: Optional[int] = None


class MuteCreate(BaseModel):
    user_id: str
    duration_minutes: int = 60
    reason: str = "Violation of chat rules"
