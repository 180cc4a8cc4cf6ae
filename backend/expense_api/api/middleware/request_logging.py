"""
Request id, timing, security headers and one log line per request
"""

import logging
import time
import uuid

from starlette.requests import Request

from expense_api.core.security_log import client_ip

logger = logging.getLogger("expense_api.requests")

SLOW_REQUEST_MS = 1000

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


def _request_id(request: Request) -> str:
    incoming = request.headers.get("x-request-id", "")
    if incoming and len(incoming) <= 64 and incoming.replace("-", "").isalnum():
        return incoming
    return str(uuid.uuid4())


async def request_logging_middleware(request: Request, call_next):
    request.state.request_id = _request_id(request)
    start_time = time.time()

    response = await call_next(request)

    process_time = time.time() - start_time
    duration_ms = round(process_time * 1000, 2)
    response.headers["X-Process-Time"] = str(process_time)
    response.headers["X-Request-ID"] = request.state.request_id
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)

    status_code = response.status_code
    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400 or duration_ms > SLOW_REQUEST_MS:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger.log(
        level,
        f"{request.method} {request.url.path} {status_code} {duration_ms}ms "
        f"request_id={request.state.request_id} ip={client_ip(request)} "
        f"user={getattr(request.state, 'user_id', None)}",
    )
    return response
