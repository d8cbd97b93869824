"""
HTTP bridge for a receiving context.

Exposes a ``MessageRouter`` over FastAPI so contexts living in other
processes can reach it with ``HttpTransport``.  Replies always use HTTP 200;
failures travel inside the ``{"error": ...}`` body, exactly like an
in-process reply.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Body, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.messaging import MessageRouter

logger = logging.getLogger(__name__)


def create_app(router: MessageRouter) -> FastAPI:
    app = FastAPI(
        title="extbridge receiving context",
        description="Cross-context message endpoint", version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.router = router

    @app.get("/health")
    @app.get("/healthz")
    async def health_check() -> Dict[str, Any]:
        return {"status": "ok", "commands": router.commands}

    @app.post("/message")
    async def receive_message(payload: Any = Body(None)) -> JSONResponse:
        reply = await router.dispatch(payload)
        if "error" in reply:
            logger.debug(f"Message {payload!r} answered with error {reply['error']!r}")
        return JSONResponse(content=reply, status_code=200)

    return app
