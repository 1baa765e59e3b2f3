"""
Realtime change notifications over server-sent events.

Clients subscribe to a table and re-run their own fetch on every event.
"""

import json
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from backend.app.core.dependencies import get_current_user
from backend.app.services.change_feed import change_feed, WATCHED_TABLES

router = APIRouter(prefix="/realtime", tags=["Realtime"])


async def _event_stream(request: Request, table: str, heartbeat_seconds: float):
    yield f"event: ready\ndata: {json.dumps({'table': table})}\n\n"
    async for event in change_feed.listen(table, heartbeat_seconds=heartbeat_seconds):
        if await request.is_disconnected():
            break
        if event is None:
            yield ": keep-alive\n\n"
            continue
        yield f"event: change\ndata: {json.dumps(event)}\n\n"


@router.get("/{table}")
async def stream_changes(
    table: str,
    request: Request,
    heartbeat: float = Query(15.0, ge=1.0, le=60.0),
    current_user: dict = Depends(get_current_user)
):
    """Stream `change` events for one watched table."""
    if table not in WATCHED_TABLES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown table '{table}'. Watched tables: {', '.join(sorted(WATCHED_TABLES))}"
        )

    return StreamingResponse(
        _event_stream(request, table, heartbeat),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    )
