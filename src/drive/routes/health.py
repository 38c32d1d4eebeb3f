"""Health check endpoints for liveness and readiness probes."""
from pathlib import Path
from typing import Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness probe.

    Attributes:
        status: Always 'alive' when process is running.
    """

    status: Literal["alive"]


class ReadinessCheck(BaseModel):
    """Individual dependency check result.

    Attributes:
        name: Identifier for the dependency being checked.
        status: Result of the check ('ok' or 'failed').
        message: Error details when status is 'failed'.
    """

    name: str
    status: Literal["ok", "failed"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    """Response model for readiness probe.

    Attributes:
        status: Overall readiness ('ready' or 'not_ready').
        checks: List of individual dependency check results.
    """

    status: Literal["ready", "not_ready"]
    checks: list[ReadinessCheck]


def _check_root(path: Path) -> ReadinessCheck:
    """Verify the store root exists and can be listed.

    Args:
        path: Canonical root directory.

    Returns:
        Check result with status and optional error message.
    """
    try:
        if path.is_dir():
            next(path.iterdir(), None)
            return ReadinessCheck(name="root", status="ok")
        return ReadinessCheck(
            name="root",
            status="failed",
            message="Directory not found",
        )
    except PermissionError as e:
        return ReadinessCheck(
            name="root",
            status="failed",
            message=f"Permission denied: {e}",
        )
    except OSError as e:
        return ReadinessCheck(name="root", status="failed", message=str(e))


def _check_hub(running: bool) -> ReadinessCheck:
    if running:
        return ReadinessCheck(name="event_hub", status="ok")
    return ReadinessCheck(name="event_hub", status="failed", message="Hub loop not running")


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe endpoint.

    Returns immediate success if the process is running.

    Returns:
        Liveness status response.
    """
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe endpoint.

    Checks that the store root is accessible and the event hub loop is
    running. Returns 200 if all checks pass, 503 if any fail.

    Args:
        request: FastAPI request object.

    Returns:
        Readiness status with individual check results.
    """
    state = request.app.state
    checks = [
        _check_root(state.file_store.root),
        _check_hub(state.event_hub.is_running),
    ]
    all_ok = all(c.status == "ok" for c in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        checks=checks,
    )
    code = status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=code)
