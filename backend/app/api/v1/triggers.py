"""
FastAPI route: document-change trigger binding.

The hosting platform posts one request per watched document mutation:

    POST /api/v1/triggers/{kind}   — dispatch a trigger firing
    GET  /api/v1/triggers          — list bound event kinds

The response only acknowledges receipt: the fan-out runs as a background
task after the 202 is sent. Handler failures are logged by the handlers
themselves and never surface here, so the platform does not retry a
fan-out that may already have partially delivered.
"""

from __future__ import annotations

import hmac
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request, status
from pydantic import BaseModel, Field

from backend.app.core.config import settings
from backend.app.core.errors import AuthenticationError
from backend.app.notifications.dispatcher import EventDispatcher, resolve_kind
from backend.app.notifications.events import TriggerEvent

router = APIRouter(prefix="/api/v1/triggers", tags=["triggers"])


# ---------------------------------------------------------------------------
# Request / Response Schemas
# ---------------------------------------------------------------------------

class TriggerRequest(BaseModel):
    """One document mutation as seen by the hosting platform."""
    params: Dict[str, str] = Field(
        default_factory=dict,
        description="Path parameters of the watched document",
        examples=[{"messageId": "m-123"}],
    )
    data: Optional[Dict[str, Any]] = Field(
        None, description="Document snapshot for create events",
    )
    before: Optional[Dict[str, Any]] = Field(
        None, description="Snapshot before an update",
    )
    after: Optional[Dict[str, Any]] = Field(
        None, description="Snapshot after an update",
    )


class TriggerAccepted(BaseModel):
    status: str = "accepted"
    kind: str
    event_id: str


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.dispatcher


def verify_trigger_secret(
    x_trigger_secret: Optional[str] = Header(None),
) -> None:
    expected = settings.TRIGGER_SHARED_SECRET
    if not expected:
        return
    if not x_trigger_secret or not hmac.compare_digest(x_trigger_secret, expected):
        raise AuthenticationError()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    summary="List bound event kinds",
)
async def list_triggers(
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> Dict[str, List[str]]:
    return {"kinds": [k.value for k in dispatcher.kinds()]}


@router.post(
    "/{kind}",
    response_model=TriggerAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Dispatch a document trigger",
    dependencies=[Depends(verify_trigger_secret)],
)
async def dispatch_trigger(
    kind: str,
    body: TriggerRequest,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> TriggerAccepted:
    trigger = TriggerEvent(
        kind=resolve_kind(kind),
        params=body.params,
        data=body.data,
        before=body.before,
        after=body.after,
    )
    background_tasks.add_task(dispatcher.dispatch, trigger)
    return TriggerAccepted(kind=trigger.kind.value, event_id=trigger.event_id)
