"""Tests for the JSON-RPC tool endpoint."""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from app.api.routes.mcp import ToolRpcDispatcher
from app.api.tools import ContactToolset
from app.core.app_factory import create_app
from app.services.contact_service import ContactService
from app.services.event_store import EventStore

URL = "/api/mcp"
CALLER_HEADERS = {"X-Forwarded-For": "1.2.3.4"}
FIRE = {"title": "Fire", "target": "fire", "description": "Smoke smell"}


def rpc(method: str, params: dict[str, Any] | None = None, request_id: int = 1) -> dict[str, Any]:
    message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def call_tool(client: TestClient, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
    resp = client.post(
        URL,
        json=rpc("tools/call", {"name": name, "arguments": arguments or {}}),
        headers=CALLER_HEADERS,
    )
    assert resp.status_code == 200
    return resp.json()["result"]


def text_of(result: dict[str, Any]) -> str:
    return result["content"][0]["text"]


class TestProtocol:
    def test_initialize(self, client) -> None:
        resp = client.post(URL, json=rpc("initialize", {"protocolVersion": "2025-03-26"}))

        result = resp.json()["result"]
        assert result["serverInfo"]["name"] == "contact-authorities"
        assert "tools" in result["capabilities"]
        assert result["protocolVersion"] == "2025-03-26"

    def test_ping(self, client) -> None:
        assert client.post(URL, json=rpc("ping")).json() == {"jsonrpc": "2.0", "id": 1, "result": {}}

    def test_tools_list(self, client) -> None:
        tools = client.post(URL, json=rpc("tools/list")).json()["result"]["tools"]

        by_name = {tool["name"]: tool for tool in tools}
        assert set(by_name) == {"contact_authorities", "get_contact_events", "get_rate_limit_status"}
        contact = by_name["contact_authorities"]
        assert contact["inputSchema"]["required"] == ["title", "target", "description"]
        assert contact["inputSchema"]["properties"]["target"]["enum"] == [
            "police", "fire", "medical", "fbi", "cybercrime", "local",
        ]
        assert "5 requests per minute" in contact["description"]
        limit = by_name["get_contact_events"]["inputSchema"]["properties"]["limit"]
        assert (limit["minimum"], limit["maximum"], limit["default"]) == (1, 100, 20)

    def test_notification_is_accepted_without_body(self, client) -> None:
        resp = client.post(URL, json={"jsonrpc": "2.0", "method": "notifications/initialized"})

        assert resp.status_code == 202
        assert resp.content == b""

    def test_parse_error(self, client) -> None:
        resp = client.post(URL, content=b"{oops", headers={"Content-Type": "application/json"})

        assert resp.json()["error"]["code"] == -32700

    def test_unknown_method(self, client) -> None:
        assert client.post(URL, json=rpc("resources/list")).json()["error"]["code"] == -32601

    def test_invalid_request(self, client) -> None:
        resp = client.post(URL, json={"id": 3, "method": "ping"})

        assert resp.json()["error"]["code"] == -32600
        assert resp.json()["id"] == 3

    def test_tools_call_without_name_is_invalid_params(self, client) -> None:
        resp = client.post(URL, json=rpc("tools/call", {"arguments": {}}))

        assert resp.json()["error"]["code"] == -32602

    def test_batch(self, client) -> None:
        resp = client.post(
            URL,
            json=[
                rpc("ping", request_id=1),
                {"jsonrpc": "2.0", "method": "notifications/initialized"},
                rpc("tools/list", request_id=2),
            ],
        )

        replies = resp.json()
        assert [reply["id"] for reply in replies] == [1, 2]

    def test_empty_batch_is_invalid(self, client) -> None:
        assert client.post(URL, json=[]).json()["error"]["code"] == -32600


class TestContactAuthoritiesTool:
    def test_success_text(self, client) -> None:
        result = call_tool(client, "contact_authorities", FIRE)

        text = text_of(result)
        assert result["isError"] is False
        assert text.startswith("Contact event logged successfully!")
        assert "Event ID: event_" in text
        assert "Target: fire" in text
        assert "Remaining requests: 4" in text

    def test_missing_fields_text(self, client) -> None:
        result = call_tool(client, "contact_authorities", {"title": "Fire"})

        assert result["isError"] is True
        assert text_of(result) == (
            "Error: Missing required fields. Please provide title, target, and description."
        )

    def test_sixth_call_is_rate_limited(self, client) -> None:
        for _ in range(5):
            assert call_tool(client, "contact_authorities", FIRE)["isError"] is False

        result = call_tool(client, "contact_authorities", FIRE)

        assert result["isError"] is True
        assert text_of(result) == (
            "Rate limit exceeded. Maximum 5 requests per minute. "
            "Please wait before making another request."
        )

    def test_free_text_target_is_accepted(self, client) -> None:
        result = call_tool(
            client,
            "contact_authorities",
            {"title": "Boat", "target": "coast guard", "description": "Capsized"},
        )

        assert result["isError"] is False

    def test_rest_and_tool_share_one_budget(self, client) -> None:
        for _ in range(3):
            client.post("/api/contact-authorities", json=FIRE, headers=CALLER_HEADERS)

        text = text_of(call_tool(client, "contact_authorities", FIRE))

        assert "Remaining requests: 1" in text


class TestGetContactEventsTool:
    def test_empty_listing(self, client) -> None:
        assert text_of(call_tool(client, "get_contact_events")) == (
            "No contact events found.\n\nRemaining requests: 4"
        )

    def test_empty_listing_for_target(self, client) -> None:
        text = text_of(call_tool(client, "get_contact_events", {"target": "fbi"}))

        assert text.startswith("No contact events found for target: fbi")

    def test_listing(self, client) -> None:
        call_tool(client, "contact_authorities", FIRE)
        call_tool(client, "contact_authorities", {**FIRE, "title": "Robbery", "target": "police"})

        text = text_of(call_tool(client, "get_contact_events", {"limit": 1}))

        assert text.startswith("Recent Contact Events (1 found):")
        assert "Title: Robbery" in text
        assert "IP: 1.2.3.4" in text
        assert text.endswith("Remaining requests: 2")


class TestRateLimitStatusTool:
    def test_status_is_free(self, client) -> None:
        call_tool(client, "contact_authorities", FIRE)

        for _ in range(3):
            text = text_of(call_tool(client, "get_rate_limit_status"))

        assert "IP Address: 1.2.3.4" in text
        assert "Requests in last minute: 1/5" in text
        assert "Remaining requests: 4" in text
        assert text.endswith("You can make more requests.")

    def test_status_when_exhausted(self, client) -> None:
        for _ in range(5):
            call_tool(client, "contact_authorities", FIRE)

        text = text_of(call_tool(client, "get_rate_limit_status"))

        assert "Rate limit reached!" in text


def test_unknown_tool(client) -> None:
    result = call_tool(client, "launch_rocket")

    assert result["isError"] is True
    assert text_of(result) == "Unknown tool: launch_rocket"


@pytest.fixture
def failing_client(failing_store, clock) -> TestClient:
    service = ContactService(
        SlidingWindowRateLimiter(failing_store, limit=5, window_seconds=60, clock=clock),
        EventStore(failing_store, clock=clock),
        clock=clock,
    )
    return TestClient(create_app(contact_service=service))


@pytest.mark.parametrize(
    ("name", "arguments", "expected"),
    [
        ("contact_authorities", FIRE, "Error: Failed to log contact event. Please try again."),
        ("get_contact_events", {}, "Error: Failed to fetch events. Please try again."),
        ("get_rate_limit_status", {}, "Error: Unable to check rate limit status. Please try again."),
    ],
)
def test_store_failures_become_error_text(failing_client, name, arguments, expected) -> None:
    result = call_tool(failing_client, name, arguments)

    assert result["isError"] is True
    assert text_of(result) == expected


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_notification_returns_none(self, service) -> None:
        dispatcher = ToolRpcDispatcher(ContactToolset(service), "1.2.3.4")

        assert await dispatcher.handle({"jsonrpc": "2.0", "method": "notifications/cancelled"}) is None

    @pytest.mark.asyncio
    async def test_non_object_message_is_invalid_request(self, service) -> None:
        dispatcher = ToolRpcDispatcher(ContactToolset(service), "1.2.3.4")

        reply = await dispatcher.handle("ping")

        assert reply == {
            "jsonrpc": "2.0",
            "id": None,
            "error": {"code": -32600, "message": "Invalid Request"},
        }

    @pytest.mark.asyncio
    async def test_tool_call_is_metered_for_dispatcher_caller(self, service) -> None:
        dispatcher = ToolRpcDispatcher(ContactToolset(service), "5.6.7.8")

        await dispatcher.handle(
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": "tools/call",
                "params": {"name": "contact_authorities", "arguments": FIRE},
            }
        )

        assert service.limiter.status("5.6.7.8").count == 1
        assert service.limiter.status("1.2.3.4").count == 0
