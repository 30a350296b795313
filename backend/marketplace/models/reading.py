from pydantic import BaseModel
from typing import Optional


class ProgressUpdate(BaseModel):
    progress_percentage: float
    current_page: Optional[int] = None


class BookmarkCreate(BaseModel):
    book_id: str


class ReadingSession(BaseModel):
    book_id: str
