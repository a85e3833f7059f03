"""
Resolve the ledger identifier for a request.
"""

from fastapi import Request

from visitor_ledger.core.config import settings

_FORWARD_HEADERS = ("x-forwarded-for", "x-real-ip")


def resolve_identifier(request: Request, supplied: str | None, trust_forwarded: bool | None = None) -> str:
    """
    Return the identifier for a ledger event.

    An identifier supplied in the request body wins. Otherwise the first address
    of X-Forwarded-For / X-Real-IP is used (when trusted), then the socket peer.
    """
    if supplied and supplied.strip():
        return supplied.strip()

    if trust_forwarded is None:
        trust_forwarded = settings.TRUST_FORWARDED_HEADERS

    if trust_forwarded:
        for header in _FORWARD_HEADERS:
            value = request.headers.get(header)
            if value:
                first = value.split(",")[0].strip()
                if first:
                    return first

    if request.client and request.client.host:
        return request.client.host
    return "unknown"
