"""Contact tools for agent runtimes.

Each tool maps onto one ContactService operation and always answers with
descriptive text, success or failure, because the calling agent consumes
free text rather than structured data.

The ``target`` enum in the tool schemas is advertised to the agent but not
enforced here; the service accepts any non-empty target, as the REST API does.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from app.core.errors import RateLimitedAppError, StoreUnavailableAppError, ValidationAppError
from app.core.logging import hash_identifier
from app.schemas.tools import (
    CONTACT_AUTHORITIES_TOOL,
    GET_CONTACT_EVENTS_TOOL,
    GET_RATE_LIMIT_STATUS_TOOL,
    ToolDefinition,
    ToolResult,
    tool_definitions,
)
from app.services.contact_service import ContactService, describe_window
from app.services.event_store import ContactEvent

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any], str], ToolResult]

# What each tool was doing, for generic failure messages
_ACTIONS = {
    CONTACT_AUTHORITIES_TOOL: "logging contact event",
    GET_CONTACT_EVENTS_TOOL: "fetching events",
    GET_RATE_LIMIT_STATUS_TOOL: "checking rate limit",
}


def format_event(event: ContactEvent) -> str:
    return (
        f"Event ID: {event.id}\n"
        f"Title: {event.title}\n"
        f"Target: {event.target}\n"
        f"Description: {event.description}\n"
        f"Timestamp: {event.created_at.isoformat()}\n"
        f"IP: {event.caller_address}\n"
    )


class ContactToolset:
    """Dispatches tool calls to the contact service and renders text results."""

    def __init__(self, service: ContactService) -> None:
        self.service = service
        self._handlers: dict[str, ToolHandler] = {
            CONTACT_AUTHORITIES_TOOL: self._contact_authorities,
            GET_CONTACT_EVENTS_TOOL: self._get_contact_events,
            GET_RATE_LIMIT_STATUS_TOOL: self._get_rate_limit_status,
        }

    def definitions(self) -> list[ToolDefinition]:
        limiter = self.service.limiter
        return tool_definitions(limiter.limit, limiter.window_seconds)

    def call(self, name: str, arguments: dict[str, Any] | None, caller_address: str) -> ToolResult:
        """Run tool ``name`` for ``caller_address``. Never raises."""

        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("tools.unknown", extra={"tool": name})
            return ToolResult.text(f"Unknown tool: {name}", is_error=True)

        try:
            return handler(arguments or {}, caller_address)
        except RateLimitedAppError as exc:
            return ToolResult.text(
                f"{exc.message} Please wait before making another request.",
                is_error=True,
            )
        except ValidationAppError:
            return ToolResult.text(
                "Error: Missing required fields. Please provide title, target, and description.",
                is_error=True,
            )
        except StoreUnavailableAppError as exc:
            return ToolResult.text(f"Error: {exc.message}. Please try again.", is_error=True)
        except Exception:
            logger.exception(
                "tools.unhandled_exception",
                extra={"tool": name, "caller_hash": hash_identifier(caller_address)},
            )
            return ToolResult.text(
                f"Error: Internal server error while {_ACTIONS[name]}.",
                is_error=True,
            )

    def _contact_authorities(self, arguments: dict[str, Any], caller_address: str) -> ToolResult:
        result = self.service.record_event(
            caller_address,
            title=arguments.get("title"),
            target=arguments.get("target"),
            description=arguments.get("description"),
        )
        event = result.event
        return ToolResult.text(
            "Contact event logged successfully!\n\n"
            f"Event ID: {event.id}\n"
            f"Title: {event.title}\n"
            f"Target: {event.target}\n"
            f"Description: {event.description}\n"
            f"Timestamp: {event.created_at.isoformat()}\n"
            f"Remaining requests: {result.rate_limit.remaining}"
        )

    def _get_contact_events(self, arguments: dict[str, Any], caller_address: str) -> ToolResult:
        target = arguments.get("target")
        result = self.service.list_events(
            caller_address,
            limit=arguments.get("limit"),
            target=target if isinstance(target, str) else None,
        )
        remaining = result.rate_limit.remaining

        if not result.events:
            if result.target:
                text = f"No contact events found for target: {result.target}"
            else:
                text = "No contact events found."
            return ToolResult.text(f"{text}\n\nRemaining requests: {remaining}")

        listing = "\n---\n\n".join(format_event(event) for event in result.events)
        return ToolResult.text(
            f"Recent Contact Events ({len(result.events)} found):\n\n"
            f"{listing}\n\n"
            f"Remaining requests: {remaining}"
        )

    def _get_rate_limit_status(self, arguments: dict[str, Any], caller_address: str) -> ToolResult:
        status = self.service.limiter_status(caller_address)
        window = describe_window(status.window_seconds)

        if status.remaining == 0:
            verdict = "Rate limit reached! Please wait before making more requests."
        else:
            verdict = "You can make more requests."

        return ToolResult.text(
            "Rate Limit Status:\n\n"
            f"IP Address: {caller_address}\n"
            f"Requests in last {window}: {status.count}/{status.limit}\n"
            f"Remaining requests: {status.remaining}\n"
            f"Window: sliding, each request counts for {status.window_seconds} seconds "
            "after it is made; status checks are not counted.\n\n"
            f"{verdict}"
        )
