"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from felicity.models.event import FieldType


class FormField(BaseModel):
    label: str = Field(min_length=1)
    field_type: FieldType = FieldType.text
    required: bool = False
    options: list[str] = []


class VariantIn(BaseModel):
    product_name: str = Field(min_length=1)
    size: str = ""
    stock: int = Field(ge=0)


class VariantOut(BaseModel):
    variant_id: int
    product_name: str
    size: str
    stock: int

    model_config = {"from_attributes": True}


class EventCreate(BaseModel):
    name: str = Field(min_length=1)
    event_type: str = "normal"  # normal, merchandise
    status: str = "draft"  # draft or published
    description: Optional[str] = None
    eligibility: Optional[str] = None
    registration_deadline: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    registration_limit: Optional[int] = Field(default=None, ge=1)
    registration_fee: int = Field(default=0, ge=0)
    purchase_limit: Optional[int] = Field(default=None, ge=1)
    tags: list[str] = []
    custom_form: list[FormField] = []
    variants: list[VariantIn] = []


class EventUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    eligibility: Optional[str] = None
    registration_deadline: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    registration_limit: Optional[int] = Field(default=None, ge=1)
    registration_fee: Optional[int] = Field(default=None, ge=0)
    purchase_limit: Optional[int] = Field(default=None, ge=1)
    tags: Optional[list[str]] = None
    custom_form: Optional[list[FormField]] = None
    variants: Optional[list[VariantIn]] = None


class StatusChange(BaseModel):
    status: str


class EventOut(BaseModel):
    event_id: str
    organizer_id: str
    name: str
    description: Optional[str] = None
    event_type: str
    status: str
    eligibility: Optional[str] = None
    registration_deadline: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    registration_limit: int
    registration_fee: int
    purchase_limit: Optional[int] = None
    tags: list[str] = []
    custom_form: list[FormField] = []
    variants: list[VariantOut] = []
    registration_count: int
    revenue: int
    attendance_count: int
    created_at: datetime
    updated_at: datetime
    recommendation_score: Optional[int] = None
    trending_score: Optional[int] = None

    model_config = {"from_attributes": True}


class AttendanceSummary(BaseModel):
    event_id: str
    registered: int
    attended: int
    not_attended: int
