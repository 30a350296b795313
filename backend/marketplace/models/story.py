from pydantic import BaseModel
from typing import Optional


class StoryCreate(BaseModel):
    title: str
    description: Optional[str] = None
    content: str


class ReactionRequest(BaseModel):
    reaction_type: str


class CommentCreate(BaseModel):
    content: str
