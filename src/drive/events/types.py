"""Typed notifications pushed to observers, and inbound observer messages."""

import time
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Wire-stable notification types."""

    CONNECTION_ESTABLISHED = "connection_established"
    PONG = "pong"
    FILE_CREATED = "file_created"
    FILE_UPDATED = "file_updated"
    FILE_DELETED = "file_deleted"
    FILE_RENAMED = "file_renamed"
    FILE_MOVED = "file_moved"
    FILE_COPIED = "file_copied"
    FOLDER_CREATED = "folder_created"
    FOLDER_UPLOADED = "folder_uploaded"
    FOLDER_COPIED = "folder_copied"


class ConnectionEstablished(BaseModel):
    """Sent once to a freshly registered observer."""

    event_type: Literal[EventType.CONNECTION_ESTABLISHED] = EventType.CONNECTION_ESTABLISHED
    client_id: str
    timestamp: int


class Pong(BaseModel):
    """Reply to an observer ping."""

    event_type: Literal[EventType.PONG] = EventType.PONG


class FileCreated(BaseModel):
    """A file was uploaded or created."""

    event_type: Literal[EventType.FILE_CREATED] = EventType.FILE_CREATED
    path: str
    size: int
    mime_type: str | None = None
    modified_at: int
    etag: str
    created_at: int | None = None


class FileUpdated(BaseModel):
    """An existing file was overwritten."""

    event_type: Literal[EventType.FILE_UPDATED] = EventType.FILE_UPDATED
    path: str
    size: int
    modified_at: int
    etag: str


class FileDeleted(BaseModel):
    """A file or directory was removed."""

    event_type: Literal[EventType.FILE_DELETED] = EventType.FILE_DELETED
    path: str
    deleted_at: int


class FileRenamed(BaseModel):
    """A file or directory was renamed."""

    event_type: Literal[EventType.FILE_RENAMED] = EventType.FILE_RENAMED
    old_path: str
    new_path: str
    timestamp: int


class FileMoved(BaseModel):
    """A file or directory was moved."""

    event_type: Literal[EventType.FILE_MOVED] = EventType.FILE_MOVED
    source_path: str
    destination_path: str
    size: int
    modified_at: int
    timestamp: int


class FileCopied(BaseModel):
    """A file was duplicated."""

    event_type: Literal[EventType.FILE_COPIED] = EventType.FILE_COPIED
    source_path: str
    destination_path: str
    size: int
    modified_at: int
    timestamp: int


class FolderCreated(BaseModel):
    """A directory was created."""

    event_type: Literal[EventType.FOLDER_CREATED] = EventType.FOLDER_CREATED
    path: str
    created_at: int


class FolderUploaded(BaseModel):
    """A batch of files was written into a directory."""

    event_type: Literal[EventType.FOLDER_UPLOADED] = EventType.FOLDER_UPLOADED
    path: str
    files_count: int
    created_at: int


class FolderCopied(BaseModel):
    """A directory tree was duplicated."""

    event_type: Literal[EventType.FOLDER_COPIED] = EventType.FOLDER_COPIED
    source_path: str
    destination_path: str
    size: int
    modified_at: int
    timestamp: int


Event = Annotated[
    Union[
        ConnectionEstablished,
        Pong,
        FileCreated,
        FileUpdated,
        FileDeleted,
        FileRenamed,
        FileMoved,
        FileCopied,
        FolderCreated,
        FolderUploaded,
        FolderCopied,
    ],
    Field(discriminator="event_type"),
]

# Fields naming a path below the root, used for subscription matching.
PATH_FIELDS: tuple[str, ...] = (
    "path",
    "old_path",
    "new_path",
    "source_path",
    "destination_path",
)


class Notification(BaseModel):
    """A single event stamped with its emission time.

    Attributes:
        event: The typed event payload.
        timestamp: Unix seconds at which the notification was created.
    """

    event: Event
    timestamp: int = Field(default_factory=lambda: int(time.time()))

    @property
    def event_type(self) -> EventType:
        """Type tag of the wrapped event."""
        return self.event.event_type

    def paths(self) -> list[str]:
        """Relative paths the event refers to."""
        return [
            value
            for name in PATH_FIELDS
            if isinstance(value := getattr(self.event, name, None), str)
        ]

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the open ``{event_type, data, timestamp}`` shape.

        Returns:
            JSON-compatible mapping sent to observers.
        """
        return {
            "event_type": self.event.event_type.value,
            "data": self.event.model_dump(mode="json", exclude={"event_type"}),
            "timestamp": self.timestamp,
        }


class InboundMessage(BaseModel):
    """Message received from an observer connection."""

    event_type: str
    data: Any = None


class PathsData(BaseModel):
    """Payload of subscribe and unsubscribe messages."""

    paths: list[str]
