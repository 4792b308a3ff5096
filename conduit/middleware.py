import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Per-request context variable
# ---------------------------------------------------------------------------

query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


def install_query_counter(engine) -> None:
    """
    Count every SQL statement executed on *engine* into ``query_count_var``.

    Must be called once per engine (production engine in ``database.py``,
    test engine in ``conftest.py``).
    """

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


# ---------------------------------------------------------------------------
# Middleware (pure ASGI, so ContextVar writes made by the app stay visible)
# ---------------------------------------------------------------------------

class TimingMiddleware:
    """
    Adds ``X-Response-Time-Ms`` and ``X-Query-Count`` headers to every
    HTTP response and logs one line per request at DEBUG level.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query_count_var.set(0)
        start = time.perf_counter()
        status = {"code": 0}

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                status["code"] = message["status"]
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", str(duration_ms).encode()))
                headers.append((b"x-query-count", str(query_count_var.get()).encode()))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_wrapper)
        logger.debug(
            "%s %s -> %s (%d queries, %.2f ms)",
            scope["method"],
            scope["path"],
            status["code"],
            query_count_var.get(),
            (time.perf_counter() - start) * 1000,
        )
