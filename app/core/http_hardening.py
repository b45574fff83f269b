from __future__ import annotations

import logging
import re
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("app.http")

API_RESPONSE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


def request_id_from_header(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value or not _REQUEST_ID_RE.fullmatch(value):
        return uuid4().hex
    return value


def install_http_hardening(app: FastAPI) -> None:
    @app.middleware("http")
    async def _request_context_middleware(request: Request, call_next):
        request_id = request_id_from_header(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        started_at = perf_counter()

        response = await call_next(request)

        response.headers.update(API_RESPONSE_HEADERS)
        response.headers[REQUEST_ID_HEADER] = request_id

        _LOG.info(
            "%s %s status=%s params=%d duration_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            len(request.query_params),
            (perf_counter() - started_at) * 1000.0,
            request_id,
        )
        return response
