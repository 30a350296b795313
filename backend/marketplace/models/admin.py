from pydantic import BaseModel
from typing import List, Optional


class RoleUpdate(BaseModel):
    user_role: str


class ApplicationReview(BaseModel):
    review_notes: Optional[str] = None


class AuthorApplicationCreate(BaseModel):
    display_name: str
    bio: str
    email: Optional[str] = None
    writing_genres: List[str] = []
    writing_samples: List[str] = []
    previous_publications: Optional[str] = None
    social_media_links: Optional[dict] = None


class ImportRequest(BaseModel):
    file_name: str
    file_type: str
    file_data: str
