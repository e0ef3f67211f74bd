"""
Operational counters at GET /debug/vars.

Returns the request metrics, store pool status, the number of in-flight
background tasks and of live asyncio tasks, plus version and timestamp.
Deployments that expose the API publicly should block /debug/ at the proxy.
"""

import asyncio
import time

from fastapi import APIRouter, Request

from cinedex import __version__

router = APIRouter(prefix="/debug", tags=["Debug"], include_in_schema=False)


@router.get("/vars")
async def debug_vars(request: Request) -> dict:
    state = request.app.state
    return {
        "version": __version__,
        "timestamp": int(time.time()),
        "metrics": state.metrics.snapshot(),
        "database": state.store.status(),
        "background_tasks": state.background.pending,
        "tasks": len(asyncio.all_tasks()),
    }
