"""JSON-RPC 2.0 endpoint exposing the contact tools to agent runtimes.

Implements the subset of the Model Context Protocol an agent needs to
discover and call tools over plain HTTP POST: ``initialize``, ``ping``,
``tools/list`` and ``tools/call``. Notifications are acknowledged with 202
and no body. Tool failures are reported as text results; only protocol
faults (bad JSON, unknown method, malformed params) become JSON-RPC errors.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.api.dependencies import get_caller_address, get_contact_service
from app.api.tools import ContactToolset
from app.core.config import SERVICE_NAME, SERVICE_VERSION
from app.core.logging import hash_identifier
from app.schemas.tools import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PROTOCOL_VERSION,
    JsonRpcRequest,
    ToolCallParams,
)
from app.services.contact_service import ContactService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tools"])

SERVER_INSTRUCTIONS = (
    "Use contact_authorities to log an incident for police, fire, medical, fbi, "
    "cybercrime or local authorities. Writes and listings share one rate limit per "
    "caller; get_rate_limit_status is free and reports the remaining budget."
)


class JsonRpcFault(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _result(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {"code": code, "message": message},
    }


class ToolRpcDispatcher:
    """Routes one parsed JSON-RPC message to its handler."""

    def __init__(self, toolset: ContactToolset, caller_address: str) -> None:
        self.toolset = toolset
        self.caller_address = caller_address

    async def handle(self, message: Any) -> dict[str, Any] | None:
        """Handle a single message; returns None for notifications."""

        if not isinstance(message, dict):
            return _error(None, INVALID_REQUEST, "Invalid Request")

        try:
            rpc = JsonRpcRequest.model_validate(message)
        except ValidationError:
            return _error(message.get("id"), INVALID_REQUEST, "Invalid Request")

        is_notification = "id" not in message

        try:
            result = await self._dispatch(rpc)
        except JsonRpcFault as fault:
            if is_notification:
                return None
            return _error(rpc.id, fault.code, fault.message)
        except Exception:
            logger.exception("mcp.unhandled_exception", extra={"method": rpc.method})
            if is_notification:
                return None
            return _error(rpc.id, INTERNAL_ERROR, "Internal error")

        if is_notification:
            return None
        return _result(rpc.id, result)

    async def _dispatch(self, rpc: JsonRpcRequest) -> Any:
        params = rpc.params or {}

        if rpc.method == "initialize":
            return {
                "protocolVersion": params.get("protocolVersion") or PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": SERVICE_NAME, "version": SERVICE_VERSION},
                "instructions": SERVER_INSTRUCTIONS,
            }

        if rpc.method == "ping" or rpc.method.startswith("notifications/"):
            return {}

        if rpc.method == "tools/list":
            return {"tools": [tool.model_dump() for tool in self.toolset.definitions()]}

        if rpc.method == "tools/call":
            try:
                call = ToolCallParams.model_validate(params)
            except ValidationError:
                raise JsonRpcFault(INVALID_PARAMS, "Invalid params: expected {name, arguments}")

            logger.info(
                "mcp.tool_call",
                extra={"tool": call.name, "caller_hash": hash_identifier(self.caller_address)},
            )
            # The record store is synchronous; keep it off the event loop.
            result = await run_in_threadpool(
                self.toolset.call, call.name, call.arguments, self.caller_address
            )
            return result.model_dump()

        raise JsonRpcFault(METHOD_NOT_FOUND, f"Method not found: {rpc.method}")


@router.post("/mcp")
async def mcp_endpoint(
    request: Request,
    service: Annotated[ContactService, Depends(get_contact_service)],
    caller_address: Annotated[str, Depends(get_caller_address)],
) -> Response:
    """JSON-RPC 2.0 entry point for agent tool calls (single or batch)."""

    try:
        payload = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(_error(None, PARSE_ERROR, "Parse error"))

    dispatcher = ToolRpcDispatcher(ContactToolset(service), caller_address)

    if isinstance(payload, list):
        if not payload:
            return JSONResponse(_error(None, INVALID_REQUEST, "Invalid Request"))
        responses = [reply for reply in [await dispatcher.handle(item) for item in payload] if reply]
        if not responses:
            return Response(status_code=202)
        return JSONResponse(responses)

    reply = await dispatcher.handle(payload)
    if reply is None:
        return Response(status_code=202)
    return JSONResponse(reply)
