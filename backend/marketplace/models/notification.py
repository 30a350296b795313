from pydantic import BaseModel
from typing import Optional


class EmailRequest(BaseModel):
    user_id: str
    email_type: str
    data: dict = {}


class GroupNotification(BaseModel):
    role: str
    title: str
    message: str
    send_email: bool = False


class ReleaseNotification(BaseModel):
    version: str
    title: str
    message: str
    link: Optional[str] = None
