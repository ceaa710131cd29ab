"""JSON-RPC envelopes and tool declarations for the agent tool endpoint."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from app.services.contact_service import describe_window
from app.services.event_store import AUTHORITY_TARGETS, MAX_LIST_LIMIT, MIN_LIST_LIMIT

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2025-03-26"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

CONTACT_AUTHORITIES_TOOL = "contact_authorities"
GET_CONTACT_EVENTS_TOOL = "get_contact_events"
GET_RATE_LIMIT_STATUS_TOOL = "get_rate_limit_status"


class JsonRpcRequest(BaseModel):
    jsonrpc: Literal["2.0"]
    method: str
    id: str | int | None = None
    params: dict[str, Any] | None = None


class ToolCallParams(BaseModel):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    content: list[TextContent]
    isError: bool = False

    @classmethod
    def text(cls, text: str, *, is_error: bool = False) -> "ToolResult":
        return cls(content=[TextContent(text=text)], isError=is_error)


class ToolDefinition(BaseModel):
    name: str
    description: str
    inputSchema: dict[str, Any]


def tool_definitions(limit: int, window_seconds: int) -> list[ToolDefinition]:
    """Tool catalogue advertised by ``tools/list``."""

    window = describe_window(window_seconds)
    return [
        ToolDefinition(
            name=CONTACT_AUTHORITIES_TOOL,
            description=(
                "Log a contact event with authorities. "
                f"Rate limited to {limit} requests per {window} per IP."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "title": {
                        "type": "string",
                        "description": "Brief title describing the incident or event",
                    },
                    "target": {
                        "type": "string",
                        "enum": list(AUTHORITY_TARGETS),
                        "description": "The authority target to contact",
                    },
                    "description": {
                        "type": "string",
                        "description": "Detailed description of why authorities need to be contacted",
                    },
                },
                "required": ["title", "target", "description"],
            },
        ),
        ToolDefinition(
            name=GET_CONTACT_EVENTS_TOOL,
            description="Retrieve recent contact authority events",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of events to retrieve (default: 20, max: 100)",
                        "minimum": MIN_LIST_LIMIT,
                        "maximum": MAX_LIST_LIMIT,
                        "default": 20,
                    },
                    "target": {
                        "type": "string",
                        "enum": list(AUTHORITY_TARGETS),
                        "description": "Filter events by authority target (optional)",
                    },
                },
            },
        ),
        ToolDefinition(
            name=GET_RATE_LIMIT_STATUS_TOOL,
            description="Check the current rate limit status for the requesting IP",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]
