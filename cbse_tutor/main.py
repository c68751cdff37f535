"""FastAPI Heartbeat. Lean."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from cbse_tutor.common.schemas import HealthCheckResponse
from cbse_tutor.core.config import get_settings
from cbse_tutor.features.assessments.endpoints import router as assessments_router
from cbse_tutor.features.progression.endpoints import router as progression_router

_settings = get_settings()
logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title=_settings.app_name)


# ------------------------
# CORS Setup
# ------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("X-Request-Id") or request.headers.get("X-Request-ID")
    req_id = incoming or str(uuid.uuid4())
    request.state.request_id = req_id
    logger = logging.getLogger("request")
    logger.info("request.start", extra={"request_id": req_id, "path": request.url.path, "method": request.method})
    response = await call_next(request)
    response.headers["X-Request-Id"] = req_id
    logger.info("request.end", extra={"request_id": req_id, "path": request.url.path, "status_code": response.status_code})
    return response


# ------------------------
# Routers
# ------------------------
app.include_router(assessments_router)
app.include_router(progression_router)


@app.get("/healthz", response_model=HealthCheckResponse)
async def healthz():
    return HealthCheckResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        services={"supabase": "configured" if _settings.supabase_url else "missing"},
        version=app.version,
    )
