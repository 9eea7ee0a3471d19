"""Request dependencies: the acting account and the app-scoped services."""
from typing import Optional

from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from felicity.config import Settings
from felicity.database import get_db
from felicity.models.account import Account, Admin, Organizer, Participant
from felicity.notifications import Notifier
from felicity.realtime import ChannelHub


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_hub(request: Request) -> ChannelHub:
    return request.app.state.hub


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_actor(
    actor_id: str = Query(..., description="ID of the account performing the request"),
    db: Session = Depends(get_db),
) -> Account:
    actor = db.query(Account).filter(Account.account_id == actor_id).first()
    if not actor:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown account")
    return actor


def get_optional_actor(
    actor_id: Optional[str] = Query(None, description="ID of the viewing account, if any"),
    db: Session = Depends(get_db),
) -> Optional[Account]:
    if not actor_id:
        return None
    return db.query(Account).filter(Account.account_id == actor_id).first()


def _require(role_cls, label: str):
    def dependency(actor: Account = Depends(get_actor)):
        if not isinstance(actor, role_cls):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Access denied. {label} only.")
        return actor

    dependency.__name__ = f"require_{label.lower()}"
    return dependency


require_participant = _require(Participant, "Participant")
require_organizer = _require(Organizer, "Organizer")
require_admin = _require(Admin, "Admin")
