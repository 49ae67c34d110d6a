import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
session_id_ctx: ContextVar[str | None] = ContextVar("session_id", default=None)

REQUEST_ID_HEADER = "X-Request-ID"

# Extra attributes copied into the JSON line when a caller passes them via ``extra=``
_EXTRA_KEYS = ("category", "record_id", "state", "status_code", "duration_ms")


class ContextIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.request_id = request_id_ctx.get() or "-"
        record.session_id = session_id_ctx.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        line: Dict[str, Any] = {
            "time": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "session_id": getattr(record, "session_id", "-"),
        }
        for key in _EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                line[key] = value
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def init_logging(debug: bool = False) -> None:
    """Route every logger through one JSON stdout handler."""
    root = logging.getLogger()
    root.handlers.clear()
    level = logging.DEBUG if debug else logging.INFO
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ContextIdFilter())
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    # httpx logs every request at INFO; the gateway already does
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def request_context_middleware(request, call_next):  # type: ignore
    """Tag the request with an id (reusing the caller's) and log its outcome."""
    rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    rid_token = request_id_ctx.set(rid)
    sid_token = session_id_ctx.set(None)
    logger = logging.getLogger("expense_desk.request")
    started = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        logger.info(
            "%s %s",
            request.method,
            request.url.path,
            extra={
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return response
    finally:
        session_id_ctx.reset(sid_token)
        request_id_ctx.reset(rid_token)
