from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import ServerSettings
from .router import router_triage
from .utils import get_logger

logger = get_logger("triage_api")

settings = ServerSettings()

app = FastAPI(
    title="Triage Pipeline API",
    version="0.1.0",
    description=(
        "Customer message triage: intent classification, keyword risk scoring, "
        "SLA breach estimation, team routing, grounded reply generation and "
        "response validation, with a streamed progress trace."
    ),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router_triage)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    rid = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = rid
    started = time.time()
    response = await call_next(request)
    response.headers["x-request-id"] = rid
    logger.info(
        "%s %s -> %d (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        (time.time() - started) * 1000.0,
        extra={"request_id": rid},
    )
    return response


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
