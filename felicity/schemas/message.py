"""Pydantic schemas for the discussion feed."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)
    type: str = "message"  # message, announcement
    parent_id: Optional[int] = None


class ReactionToggle(BaseModel):
    emoji: str = Field(min_length=1)


class MessageOut(BaseModel):
    message_id: int
    event_id: str
    author_id: str
    author_name: str
    author_role: str
    content: str
    type: str
    parent_id: Optional[int] = None
    pinned: bool
    reactions: dict[str, list[str]] = {}
    created_at: datetime
    replies: list[MessageOut] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class MessagePage(BaseModel):
    messages: list[MessageOut]
    pagination: Pagination


class AnnouncementOut(BaseModel):
    message_id: int
    event_id: str
    event_name: str
    author_name: str
    content: str
    created_at: datetime


class UnreadAnnouncements(BaseModel):
    count: int
    announcements: list[AnnouncementOut]


MessageOut.model_rebuild()
