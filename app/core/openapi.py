"""OpenAPI metadata customization.

Adds tag descriptions and documents the rate-limit response headers shared
by every metered endpoint, keeping documentation concerns out of the app
factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

RATE_LIMIT_HEADERS_DOC: Dict[str, Any] = {
    "X-RateLimit-Limit": {
        "description": "Requests allowed per caller address per window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Requests left in the current window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "Estimated UNIX time (seconds) when the window frees up.",
        "schema": {"type": "integer"},
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with tags and rate-limit headers.

    - Adds tags metadata if not present
    - Documents X-RateLimit-* headers on every response of the events API
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Events",
                "description": "File and list contact events. Rate limited per caller address.",
            },
            {
                "name": "Tools",
                "description": "JSON-RPC 2.0 (MCP) tool endpoint for agent runtimes.",
            },
            {
                "name": "Health",
                "description": "Liveness check.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if "/contact-authorities" not in path:
                continue
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                for response in method_obj.get("responses", {}).values():
                    response.setdefault("headers", {}).update(RATE_LIMIT_HEADERS_DOC)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
