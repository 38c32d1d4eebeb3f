"""Events subsystem: broadcast hub and WebSocket observer sessions."""
from drive.events.hub import EventHub
from drive.events.observer import Observer, Outbox
from drive.events.session import ObserverSession
from drive.events.types import Event, EventType, Notification

__all__ = [
    "Event",
    "EventHub",
    "EventType",
    "Notification",
    "Observer",
    "ObserverSession",
    "Outbox",
]
