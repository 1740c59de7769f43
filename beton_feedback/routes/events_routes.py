import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from beton_feedback.auth.authenticators import AdminIdentity
from beton_feedback.auth.dependencies import require_admin
from beton_feedback.events import EventBus
from beton_feedback.state import AppState, get_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/admin', tags=['admin'])

SSE_EVENT_NAME = 'admin-update'
KEEPALIVE_SECONDS = 15.0


def sse_frame(event: str, payload: dict[str, Any]) -> str:
    data = json.dumps({'event': event, 'data': payload}, ensure_ascii=False, default=str)
    return f'event: {SSE_EVENT_NAME}\ndata: {data}\n\n'


async def admin_event_stream(
    events: EventBus,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_seconds: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames for every bus event until the client goes away."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # Handlers publish from worker threads; hand events over to this loop.
    def enqueue(event: str, payload: dict[str, Any]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, (event, payload))

    unsubscribe = events.subscribe(enqueue)
    try:
        yield ': connected\n\n'
        while not await is_disconnected():
            try:
                event, payload = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield ': keep-alive\n\n'
                continue
            yield sse_frame(event, payload)
    finally:
        unsubscribe()


@router.get('/events')
async def stream_admin_events(
    request: Request,
    admin: AdminIdentity = Depends(require_admin),
    state: AppState = Depends(get_state),
):
    logger.info('Admin %s subscribed to live updates', admin.user_id)
    return StreamingResponse(
        admin_event_stream(state.events, request.is_disconnected),
        media_type='text/event-stream',
        headers={'Cache-Control': 'no-cache'},
    )
