"""WebSocket endpoint streaming file store events."""

from typing import TYPE_CHECKING

from fastapi import APIRouter, WebSocket

from drive.events import ObserverSession

if TYPE_CHECKING:
    from drive.config import Settings
    from drive.events.hub import EventHub

router = APIRouter(prefix="/ws", tags=["events"])


@router.websocket("/files")
async def file_events(websocket: WebSocket) -> None:
    """Stream file store events to one observer.

    Accepts the connection, sends a connection_established greeting and
    then every broadcast notification until the client disconnects.
    Clients may send ping, subscribe and unsubscribe messages.

    Args:
        websocket: Incoming WebSocket connection.
    """
    hub: EventHub = websocket.app.state.event_hub
    settings: Settings = websocket.app.state.settings

    await websocket.accept()
    session = ObserverSession(hub, queue_size=settings.hub_client_queue_size)
    await session.run(websocket)
