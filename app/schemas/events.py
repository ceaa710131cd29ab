"""Pydantic schemas for the contact events REST API."""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, Field

from app.services.event_store import ContactEvent


class ContactEventRequest(BaseModel):
    """Body of a new contact event.

    Fields are optional at the schema level so that missing or blank values
    reach the service and come back as a uniform 400 invalid_input error.
    ``target`` is free text here; the suggested authority kinds are only
    advisory.
    """

    title: Any = Field(
        default=None,
        description="Brief title describing the incident or event.",
        examples=["Fire"],
    )
    target: Any = Field(
        default=None,
        description="Authority to contact, e.g. police, fire, medical, fbi, cybercrime, local.",
        examples=["fire"],
    )
    description: Any = Field(
        default=None,
        description="Why the authorities need to be contacted.",
        examples=["Smoke smell"],
    )


class ContactEventCreatedResponse(BaseModel):
    success: bool = Field(True, description="Always true on success.")
    eventId: str = Field(..., description="Identifier of the stored event.")
    message: str = Field("Contact event logged successfully")


class ContactEventView(BaseModel):
    """Public shape of a stored event."""

    id: str
    title: str
    target: str
    description: str
    timestamp: str = Field(..., description="ISO-8601 UTC creation time.")
    ip: str = Field(..., description="Best-effort caller address of the submitter.")

    @classmethod
    def from_event(cls, event: ContactEvent) -> "ContactEventView":
        return cls(
            id=event.id,
            title=event.title,
            target=event.target,
            description=event.description,
            timestamp=event.created_at.isoformat(),
            ip=event.caller_address,
        )


class ContactEventListResponse(BaseModel):
    events: List[ContactEventView] = Field(default_factory=list)
    total: int = Field(..., description="Number of events returned.")


class RateLimitStatusResponse(BaseModel):
    ip: str = Field(..., description="Caller address the limit is keyed on.")
    count: int = Field(..., description="Metered requests within the current window.")
    limit: int
    remaining: int
    window_seconds: int
