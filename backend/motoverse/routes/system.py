from __future__ import annotations
from fastapi import APIRouter, Request
from datetime import datetime, timezone

router = APIRouter()

@router.get("/health")
async def health(request: Request):
    cfg = request.app.state.settings
    return {
        "status": "ok",
        "env": cfg.environment,
        "time": datetime.now(timezone.utc).isoformat(),
        "request_id": request.headers.get("x-request-id") or request.state.request_id,
    }

@router.get("/version")
async def version(request: Request):
    cfg = request.app.state.settings
    return {
        "name": cfg.app_name,
        "version": cfg.app_version,
        "git_sha": cfg.git_sha,
        "build": "docker",
    }
