"""User-facing validation outcomes.

Every error here is an expected result of a request (full event, duplicate
scan, ...) rather than a fault. They are HTTPExceptions so they propagate out
of the service layer straight to the client as a 4xx with
``{"error": <kind>, "message": <text>}`` and are never retried.
"""
from typing import Any, Optional

from fastapi import HTTPException, status


class FelicityError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.kind = type(self).__name__
        self.message = message or self.default_message
        detail = {"error": self.kind, "message": self.message}
        detail.update(extra)
        super().__init__(status_code=self.status_code, detail=detail)


# --- registration / capacity -------------------------------------------------

class RegistrationClosed(FelicityError):
    default_message = "Event is not open for registration"


class DeadlinePassed(FelicityError):
    default_message = "Registration deadline has passed"


class AlreadyRegistered(FelicityError):
    default_message = "You have already registered for this event"


class EventFull(FelicityError):
    default_message = "Registration limit reached"


class OutOfStock(FelicityError):
    default_message = "Not enough items in stock"


class VariantNotFound(FelicityError):
    default_message = "Selected variant not available"


class PurchaseLimitExceeded(FelicityError):
    default_message = "Purchase limit exceeded"


class MissingRequiredField(FelicityError):
    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Field '{label}' is required", field=label)


# --- event lifecycle ---------------------------------------------------------

class InvalidStatusTransition(FelicityError):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot transition from '{current}' to '{requested}'",
            **{"from": current, "to": requested},
        )


class EventNotEditable(FelicityError):
    default_message = "Only draft events or events without registrations can be edited"


class FormLocked(FelicityError):
    default_message = "Cannot modify the registration form after registrations have been received"


# --- attendance --------------------------------------------------------------

class TicketNotFound(FelicityError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Invalid ticket ID. Registration not found."


class NotAuthorized(FelicityError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Unauthorized. This event does not belong to you."


class AlreadyMarked(FelicityError):
    default_message = "Attendance already marked"


# --- discussion feed ---------------------------------------------------------

class NotRegistered(FelicityError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You must be registered for this event to post messages"


class ParentNotFound(FelicityError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Parent message not found"


class NestedReplyNotAllowed(FelicityError):
    default_message = "Replies can only be made to top-level messages"


# --- accounts / teams --------------------------------------------------------

class EmailTaken(FelicityError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "An account with this email already exists"


class TeamFull(FelicityError):
    default_message = "Team is already full or finalized"
