"""
Client IP resolution for FastAPI requests.

The resolved address is the throttle actor for code verification, so proxy
headers are only honoured when the deployment sits behind a trusted proxy.
"""

from __future__ import annotations

from fastapi import Request

_PROXY_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
)


def get_client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    """Extract the real client IP from a FastAPI ``Request``.

    With *trust_proxy_headers* the proxy headers are checked in priority
    order (Cloudflare, Akamai, standard ``X-Forwarded-For`` first hop,
    nginx) before falling back to the direct connection address. Without it
    only the socket peer is used, since any client can forge the headers.

    Returns:
        The resolved client IP string, or ``""`` if none can be found.
    """
    if trust_proxy_headers:
        for header in _PROXY_HEADERS:
            ip_value: str | None = request.headers.get(header)
            if ip_value:
                client_ip = ip_value.split(",")[0].strip()
                if client_ip:
                    return client_ip

    return request.client.host if request.client else ""
