"""Ticket identifiers and the QR payload embedded in them.

The QR image itself is produced and scanned elsewhere; this module only owns
the string that goes inside it::

    TICKET:<ticket_id>|EVENT:<event_id>|PARTICIPANT:<participant_id>

Scanners may also submit a bare ticket id typed in by hand.
"""
import secrets
import string
import time

_ALPHABET = string.ascii_uppercase + string.digits
_PASSWORD_ALPHABET = string.ascii_letters + string.digits


def random_code(length: int = 6) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_password(length: int = 12) -> str:
    """One-time password handed to organizers by an admin."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def mint_ticket_id() -> str:
    """TICKET-<epoch ms>-<6 random chars>; uniqueness is backed by a DB constraint."""
    return f"TICKET-{int(time.time() * 1000)}-{random_code()}"


def build_qr_payload(ticket_id: str, event_id: str, participant_id: str) -> str:
    return f"TICKET:{ticket_id}|EVENT:{event_id}|PARTICIPANT:{participant_id}"


def parse_qr_payload(raw: str) -> dict[str, str]:
    """Split a scanned payload into its parts.

    Returns at least ``ticket``; a string without delimiters is taken as a
    manually entered ticket id.
    """
    raw = raw.strip()
    if "|" not in raw and not raw.upper().startswith("TICKET:"):
        return {"ticket": raw}

    parts: dict[str, str] = {}
    for chunk in raw.split("|"):
        key, sep, value = chunk.partition(":")
        if sep and value.strip():
            parts[key.strip().lower()] = value.strip()
    if "ticket" not in parts:
        raise ValueError("QR payload has no TICKET segment")
    return parts


def ticket_from_scan(raw: str) -> str:
    try:
        return parse_qr_payload(raw)["ticket"]
    except ValueError:
        return raw.strip()
