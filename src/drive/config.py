"""Service configuration loaded from environment variables."""
from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables.

    Attributes:
        host: Bind address for the HTTP server.
        port: Port number for the HTTP server.
        debug: Enable debug logging and API documentation.
        cors_origins_raw: Raw comma-separated CORS origins string.
        shutdown_timeout: Seconds to wait for graceful shutdown.
        root_dir: Directory all file operations are confined to.
        max_upload_bytes: Cumulative size cap for a single upload.
        upload_chunk_bytes: Maximum bytes read per upload chunk.
        max_edit_bytes: Size cap for edited file content.
        log_json: Emit JSON log lines instead of console output.
        hub_broadcast_queue_size: Capacity of the hub broadcast mailbox.
        hub_client_queue_size: Capacity of each observer's outbox.
        hub_filter_subscriptions: Deliver only events under an observer's
            subscribed path prefixes.
    """

    model_config = SettingsConfigDict(
        env_prefix="DRIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    cors_origins_raw: str = "http://localhost:5173"
    shutdown_timeout: float = 30.0

    root_dir: str = "data/public"
    max_upload_bytes: int = 1024 * 1024 * 1024 * 1024
    upload_chunk_bytes: int = 10 * 1024 * 1024
    max_edit_bytes: int = 10 * 1024 * 1024

    log_json: bool = True

    hub_broadcast_queue_size: int = 100
    hub_client_queue_size: int = 10
    hub_filter_subscriptions: bool = False

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string.

        Returns:
            List of allowed origin URLs.
        """
        return [
            origin.strip()
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]
