"""Pydantic schemas for Accounts."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

# bcrypt only looks at the first 72 bytes and rejects longer input
MAX_PASSWORD_BYTES = 72


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


class ParticipantCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    first_name: str
    last_name: str
    participant_type: Optional[str] = None  # iiit, non-iiit
    college: Optional[str] = None
    contact_number: Optional[str] = None
    interests: list[str] = []

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class ProfileUpdate(BaseModel):
    # Participant fields
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    college: Optional[str] = None
    contact_number: Optional[str] = None
    interests: Optional[list[str]] = None
    # Organizer fields
    organizer_name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    webhook_url: Optional[str] = None


class OnboardingPayload(BaseModel):
    interests: list[str] = []
    followed_organizer_ids: list[str] = []


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6, max_length=72)

    @field_validator("new_password")
    @classmethod
    def new_password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class AccountOut(BaseModel):
    account_id: str
    email: str
    role: str
    display_name: str
    onboarding_completed: bool
    created_at: datetime

    # Participant
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    participant_type: Optional[str] = None
    college: Optional[str] = None
    contact_number: Optional[str] = None
    interests: Optional[list[str]] = None
    followed_organizer_ids: Optional[list[str]] = None

    # Organizer
    organizer_name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    contact_email: Optional[str] = None
    webhook_url: Optional[str] = None

    model_config = {"from_attributes": True}


class OrganizerCreate(BaseModel):
    organizer_name: str
    category: str
    description: Optional[str] = None
    contact_email: Optional[EmailStr] = None


class OrganizerUpdate(BaseModel):
    organizer_name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    contact_email: Optional[EmailStr] = None


class OrganizerPublic(BaseModel):
    account_id: str
    organizer_name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    contact_email: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class Credentials(BaseModel):
    email: str
    password: str
    note: str = "Save these credentials! The password will not be shown again."


class OrganizerCreated(BaseModel):
    organizer: AccountOut
    credentials: Credentials


class ResetRequestCreate(BaseModel):
    reason: str = ""


class ResetRequestOut(BaseModel):
    request_id: str
    organizer_id: str
    status: str
    reason: str
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    model_config = {"from_attributes": True}


class ResetApproved(BaseModel):
    request: ResetRequestOut
    organizer_name: Optional[str] = None
    credentials: Credentials


class AdminStats(BaseModel):
    total_participants: int
    total_organizers: int
    total_events: int
    total_registrations: int
    recent_events: list[dict]
