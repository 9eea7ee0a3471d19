"""Real-time channel for an event's discussion feed.

One connection is one hub subscription: it is created once the caller is
known to belong to the event and removed when the socket goes away.
"""
import asyncio
import contextlib
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from felicity.database import Database
from felicity.models.account import Account, Admin
from felicity.models.event import Event
from felicity.realtime import ChannelHub, Subscription
from felicity.services.feed_service import can_participate

logger = logging.getLogger(__name__)
router = APIRouter()

TYPING_EVENTS = {"typing": "user_typing", "stop_typing": "user_stop_typing"}


def _resolve_member(database: Database, event_id: str, actor_id: Optional[str]) -> Optional[tuple[str, str]]:
    """(account_id, display_name) if the account may follow this event's feed."""
    if not actor_id:
        return None
    with database.session() as db:
        event = db.query(Event).filter(Event.event_id == event_id).first()
        account = db.query(Account).filter(Account.account_id == actor_id).first()
        if event is None or account is None:
            return None
        if not isinstance(account, Admin) and not can_participate(db, event, account):
            return None
        return account.account_id, account.display_name


async def _forward(websocket: WebSocket, sub: Subscription) -> None:
    while True:
        envelope = await sub.receive()
        if envelope is None:
            await websocket.close(code=status.WS_1001_GOING_AWAY)
            return
        await websocket.send_json(envelope)


@router.websocket("/ws/events/{event_id}")
async def event_channel(websocket: WebSocket, event_id: str, actor_id: Optional[str] = None):
    hub: ChannelHub = websocket.app.state.hub
    member = await run_in_threadpool(_resolve_member, websocket.app.state.database, event_id, actor_id)
    if member is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    account_id, display_name = member
    await websocket.accept()
    sub = hub.subscribe(event_id, account_id, display_name)
    who = {"account_id": account_id, "name": display_name}
    forwarder = asyncio.create_task(_forward(websocket, sub))
    try:
        while True:
            try:
                incoming = await websocket.receive_json()
            except (KeyError, ValueError):
                # Binary frames and non-JSON text are ignored
                continue
            relay = TYPING_EVENTS.get(incoming.get("type")) if isinstance(incoming, dict) else None
            if relay:
                hub.publish(event_id, relay, who, exclude=sub)
    except WebSocketDisconnect:
        pass
    finally:
        forwarder.cancel()
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
            await forwarder
        hub.unsubscribe(sub)
        hub.publish(event_id, "user_stop_typing", who)
