"""Pydantic schemas for Registrations and attendance marking.

The registration and scan endpoints are consumed by existing clients that
speak camelCase, so those schemas alias their fields; snake_case input is
accepted too.
"""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class VariantSelection(CamelModel):
    variant_id: Optional[int] = None
    product_name: Optional[str] = None
    size: Optional[str] = None


class RegistrationCreate(CamelModel):
    event_id: str
    form_data: dict[str, Any] = {}
    variant: Optional[VariantSelection] = None
    quantity: int = Field(default=1, ge=1)


class RegistrationCreated(CamelModel):
    ticket_id: str
    registration_id: str
    event_id: str
    status: str
    payment_status: str
    amount_paid: int
    qr_payload: str


class AttendanceMark(CamelModel):
    ticket_id: str = Field(min_length=1)


class AttendedParticipant(CamelModel):
    name: str
    email: str
    event_id: str
    event_name: str
    ticket_id: str


class AttendanceMarked(CamelModel):
    participant: AttendedParticipant
    attendance_time: datetime


class ParticipantBrief(BaseModel):
    account_id: str
    email: str
    display_name: str
    college: Optional[str] = None
    contact_number: Optional[str] = None

    model_config = {"from_attributes": True}


class RegistrationOut(BaseModel):
    registration_id: str
    event_id: str
    participant_id: str
    ticket_id: str
    form_data: dict[str, Any] = {}
    variant_id: Optional[int] = None
    quantity: int
    amount_paid: int
    payment_status: str
    status: str
    attended: bool
    attendance_timestamp: Optional[datetime] = None
    registered_at: datetime
    participant: Optional[ParticipantBrief] = None

    model_config = {"from_attributes": True}


class RegistrationCheck(BaseModel):
    is_registered: bool
    registration: Optional[RegistrationOut] = None
