"""Lesson progress API endpoints.

Provides routes for:
- Playback WebSocket (one tracking session per open player)
- Stored progress queries
- Sales-video unlock gate
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from src.auth.dependencies import CurrentUser, authenticate_websocket
from src.config.settings import Settings, get_settings
from src.core.context import SessionContext
from src.core.logging import get_logger
from src.notifications.service import get_connection_manager

from .curve import playback_fraction
from .dependencies import FlagStoreDep, ProgressStoreDep, handle_progress_error
from .models import LessonProgress, TrackerState
from .schemas import (
    CompleteMessage,
    ErrorMessage,
    LessonCompletedMessage,
    LessonProgressResponse,
    PingMessage,
    SessionStateMessage,
    TickMessage,
    UnlockProgressRequest,
    UnlockStatusResponse,
    client_message_adapter,
)
from .store import ProgressError
from .tracker import PlaybackTracker
from .unlock import UnlockGate


logger = get_logger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])
unlock_router = APIRouter(prefix="/v1/unlock", tags=["unlock"])
ws_router = APIRouter(tags=["progress-ws"])

LESSON_COMPLETED_MESSAGE = "Aula concluida!"

# Close code for "service unavailable, try again later"
WS_TRY_AGAIN_LATER = 1013


# ==============================================================================
# Playback WebSocket
# ==============================================================================


async def _send_state(
    websocket: WebSocket, tracker: PlaybackTracker, message_type: str
) -> None:
    message = SessionStateMessage.from_snapshot(message_type, tracker.snapshot())
    await websocket.send_json(message.model_dump(mode="json"))


async def _send_completed(
    websocket: WebSocket, tracker: PlaybackTracker, manual: bool
) -> None:
    message = LessonCompletedMessage(
        lesson_id=tracker.lesson_id,
        completed_at=tracker.completed_at,
        manual=manual,
        message=LESSON_COMPLETED_MESSAGE,
    )
    await websocket.send_json(message.model_dump(mode="json"))


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json(ErrorMessage(message=message).model_dump(mode="json"))


@ws_router.websocket("/ws/lessons/{lesson_id}/playback")
async def playback_websocket(
    websocket: WebSocket,
    lesson_id: UUID,
    token: str = Query(..., description="JWT access token"),
) -> None:
    """Playback tracking session for one lesson.

    Connect with: ws://host/ws/lessons/<lesson_id>/playback?token=<jwt_token>

    Messages you can send:
    - {"type": "tick", "current_time": 12.5, "duration": 300}
    - {"type": "complete"} - Mark lesson as complete
    - {"type": "ping"}

    Messages received:
    - {"type": "session", ...} - Initial state (resume position)
    - {"type": "progress", "real", "display", "watched_seconds", ...}
    - {"type": "completed", ...} - Once, on completion
    - {"type": "notification", ...} - e.g. certificate issued
    - {"type": "pong"} / {"type": "error", "message"}
    """
    user_id = authenticate_websocket(token)
    if not user_id:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    store = getattr(websocket.app.state, "progress_store", None)
    if store is None:
        await websocket.close(code=WS_TRY_AGAIN_LATER, reason="Progress unavailable")
        return

    events = getattr(websocket.app.state, "event_bus", None)
    tracker = PlaybackTracker.from_settings(store, events, get_settings())

    user_key = str(user_id)
    manager = get_connection_manager()

    await websocket.accept()
    # Notifications (certificate issued) reach the open player too
    manager.register(user_key, websocket)

    with SessionContext(user_id=user_id, lesson_id=lesson_id):
        try:
            await tracker.initialize(user_id, lesson_id)
            await _send_state(websocket, tracker, "session")

            while True:
                raw = await websocket.receive_text()
                try:
                    message = client_message_adapter.validate_json(raw)
                except ValidationError:
                    await _send_error(websocket, "Mensagem invalida")
                    continue

                if isinstance(message, TickMessage):
                    was_tracking = tracker.state is TrackerState.TRACKING
                    await tracker.update_progress(
                        message.current_time, message.duration
                    )
                    if was_tracking and tracker.state is TrackerState.COMPLETED:
                        await _send_completed(websocket, tracker, manual=False)
                    await _send_state(websocket, tracker, "progress")

                elif isinstance(message, CompleteMessage):
                    if await tracker.mark_complete():
                        await _send_completed(websocket, tracker, manual=True)
                    await _send_state(websocket, tracker, "progress")

                elif isinstance(message, PingMessage):
                    await websocket.send_json({"type": "pong"})

        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning("playback_websocket_error", error=str(e))
        finally:
            await tracker.teardown()
            manager.disconnect(user_key, websocket)


# ==============================================================================
# Progress Query Endpoints
# ==============================================================================


@router.get(
    "/lessons/{lesson_id}",
    response_model=LessonProgressResponse,
    summary="Get lesson progress",
)
async def get_lesson_progress(
    lesson_id: UUID,
    store: ProgressStoreDep,
    user: CurrentUser,
) -> LessonProgressResponse:
    """Get stored progress of a lesson for the current user.

    Returns a zero record when the lesson was never watched.
    """
    try:
        progress = await store.read_progress(user.id, lesson_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e

    if progress is None:
        progress = LessonProgress(user_id=user.id, lesson_id=lesson_id)
    return LessonProgressResponse.from_entity(progress)


# ==============================================================================
# Unlock Gate Endpoints
# ==============================================================================


@unlock_router.get(
    "/{visitor_id}",
    response_model=UnlockStatusResponse,
    summary="Get unlock state",
)
async def get_unlock_status(
    visitor_id: str,
    flags: FlagStoreDep,
) -> UnlockStatusResponse:
    """Whether the sales offer is already unlocked for a visitor."""
    gate = UnlockGate(visitor_id, flags)
    unlocked = await gate.load()
    return UnlockStatusResponse(visitor_id=visitor_id, unlocked=unlocked)


@unlock_router.post(
    "/progress",
    response_model=UnlockStatusResponse,
    summary="Report sales-video progress",
)
async def report_unlock_progress(
    data: UnlockProgressRequest,
    flags: FlagStoreDep,
    settings: Annotated[Settings, Depends(get_settings)],
) -> UnlockStatusResponse:
    """Record sales-video playback; unlocks the offer at the threshold."""
    gate = UnlockGate(data.visitor_id, flags, threshold=settings.unlock_threshold)
    await gate.load()
    just_unlocked = await gate.observe(
        playback_fraction(data.current_time, data.duration)
    )
    return UnlockStatusResponse(
        visitor_id=data.visitor_id,
        unlocked=gate.has_unlocked,
        just_unlocked=just_unlocked,
        real=gate.real_progress,
        display=gate.display_progress,
    )
