"""Pydantic schemas for Teams."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class TeamCreate(BaseModel):
    name: str = Field(min_length=1)
    target_size: int = Field(ge=2, le=6)


class TeamJoin(BaseModel):
    invite_code: str = Field(min_length=1)


class TeamInvite(BaseModel):
    participant_id: str


class TeamMemberOut(BaseModel):
    participant_id: str
    status: str
    added_at: datetime
    joined_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TeamOut(BaseModel):
    team_id: str
    event_id: str
    leader_id: str
    name: str
    invite_code: str
    target_size: int
    status: str
    created_at: datetime
    members: list[TeamMemberOut] = []

    model_config = {"from_attributes": True}


TeamOut.model_rebuild()
