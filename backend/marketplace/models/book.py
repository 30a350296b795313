from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class BookBase(BaseModel):
    title: str
    author_name: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    cover_image_url: Optional[str] = None
    price_cents: Optional[int] = None
    series_name: Optional[str] = None
    isbn: Optional[str] = None


class BookCreate(BookBase):
    content: Optional[str] = None
    genre_ids: List[str] = []


class BookUpdate(BaseModel):
    title: Optional[str] = None
    author_name: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    cover_image_url: Optional[str] = None
    price_cents: Optional[int] = None
    series_name: Optional[str] = None
    isbn: Optional[str] = None


class Book(BookBase):
    id: str
    author_id: Optional[str] = None
    book_status: str = "draft"
    book_type: Optional[str] = None
    preview_text: Optional[str] = None
    word_count: Optional[int] = None
    page_count: Optional[int] = None
    rating_average: Optional[float] = None
    rating_count: Optional[int] = None
    view_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookStatusUpdate(BaseModel):
    approve: bool
    reason: Optional[str] = None


class GiftCreate(BaseModel):
    recipient_id: str
    gift_message: Optional[str] = None


class ThankMessageCreate(BaseModel):
    message: str


class ReviewCreate(BaseModel):
    rating: int
    review_text: Optional[str] = None
