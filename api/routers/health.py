"""Liveness endpoint."""

import time

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Returns 200 while the process is alive."""
    started = getattr(request.app.state, "start_time", None)
    uptime = round(time.time() - started, 1) if started else 0.0
    return {"status": "ok", "uptime_sec": uptime}
