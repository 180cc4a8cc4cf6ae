"""
Security event logging
"""

import logging
from typing import Any, Dict, Optional

from starlette.requests import Request

security_logger = logging.getLogger("expense_api.security")


def client_ip(request: Request) -> str:
    """
    Client address, preferring proxy headers over the socket peer
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()

    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def log_security_event(request: Request, event: str, details: Optional[Dict[str, Any]] = None) -> None:
    request_id = getattr(request.state, "request_id", None)
    extra = " ".join(f"{k}={v}" for k, v in (details or {}).items())
    security_logger.warning(
        f"Security event {event}: request_id={request_id} ip={client_ip(request)} "
        f"method={request.method} path={request.url.path} {extra}".rstrip()
    )
