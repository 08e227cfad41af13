"""HTTP command surface — lets a remote UI drive the auth state machine.

Endpoints
---------
GET  /auth/state    → current state
POST /auth/events   → apply one user event, return the resulting state
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from otp_session.machine.auth_machine import AuthStateMachine
from otp_session.models.events import (
    BackToLoginClicked,
    EmailChanged,
    LogoutClicked,
    OtpChanged,
    ResendOtpClicked,
    SendOtpClicked,
    UserEvent,
    VerifyOtpClicked,
)
from otp_session.models.state import state_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

EventType = Literal[
    "email_changed",
    "send_otp",
    "otp_changed",
    "verify_otp",
    "resend_otp",
    "back_to_login",
    "logout",
]


# ── Request / response models ────────────────────────────

class EventRequest(BaseModel):
    type: EventType
    value: str | None = None

    def to_event(self) -> UserEvent:
        if self.type == "email_changed":
            return EmailChanged(self.value or "")
        if self.type == "otp_changed":
            return OtpChanged(self.value or "")
        return _COMMANDS[self.type]()


class StateResponse(BaseModel):
    kind: str
    state: dict[str, Any]


_COMMANDS = {
    "send_otp": SendOtpClicked,
    "verify_otp": VerifyOtpClicked,
    "resend_otp": ResendOtpClicked,
    "back_to_login": BackToLoginClicked,
    "logout": LogoutClicked,
}


def get_machine(request: Request) -> AuthStateMachine:
    """Return the engine created by the application lifespan."""
    return request.app.state.auth_machine


# ── Endpoints ────────────────────────────────────────────

@router.get("/state", response_model=StateResponse)
async def read_state(machine: AuthStateMachine = Depends(get_machine)):
    """Return the live auth state."""
    return StateResponse(**state_to_dict(machine.state))


@router.post("/events", response_model=StateResponse)
async def post_event(
    body: EventRequest, machine: AuthStateMachine = Depends(get_machine)
):
    """Apply one user event and return the resulting state."""
    event = body.to_event()
    logger.debug("Dispatching %s", type(event).__name__)
    state = machine.dispatch(event)
    return StateResponse(**state_to_dict(state))
