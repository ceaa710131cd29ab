"""Best-effort caller identity from forwarded-address signals.

None of these headers are authenticated: any client can set them, so the
resolved value is only good enough to key a coarse rate limit. Spoofing
resistance is out of scope.
"""

from __future__ import annotations

from typing import Mapping

UNKNOWN_ADDRESS = "unknown"

FORWARDED_FOR_HEADER = "x-forwarded-for"
REAL_IP_HEADER = "x-real-ip"
CF_CONNECTING_IP_HEADER = "cf-connecting-ip"


def _header(headers: Mapping[str, str], name: str) -> str:
    # Starlette Headers are case-insensitive already; plain dicts are not.
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                value = candidate
                break
    return (value or "").strip()


def resolve_caller_address(
    headers: Mapping[str, str],
    peer_address: str | None = None,
) -> str:
    """Resolve the caller address used as rate-limit key.

    Priority (first non-empty wins): first entry of X-Forwarded-For,
    X-Real-IP, CF-Connecting-IP, the transport peer address, "unknown".

    Examples:
        >>> resolve_caller_address({"X-Forwarded-For": " 1.2.3.4, 10.0.0.1"})
        '1.2.3.4'
        >>> resolve_caller_address({}, "127.0.0.1")
        '127.0.0.1'
        >>> resolve_caller_address({})
        'unknown'
    """

    forwarded = _header(headers, FORWARDED_FOR_HEADER)
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    for name in (REAL_IP_HEADER, CF_CONNECTING_IP_HEADER):
        value = _header(headers, name)
        if value:
            return value

    if peer_address and peer_address.strip():
        return peer_address.strip()

    return UNKNOWN_ADDRESS
