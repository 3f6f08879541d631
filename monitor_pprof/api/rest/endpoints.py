"""
pprof REST Endpoints
Author: Drmusab
Last Modified: 2026-10-19 13:41:05 UTC

Exposes ``GET /debug/pprof/profile``, which captures a CPU trace from the
diagnostics agent for the requested number of seconds and returns it as a
pprof profile.
"""

import asyncio
import threading
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from monitor_pprof.core.config.settings import ServiceSettings
from monitor_pprof.core.dependency_injection import Container
from monitor_pprof.core.error_handling import (
    BaseProfilerError,
    ConfigurationError,
    ConversionCancelledError,
    TraceAcquisitionError,
    TraceDecodingError,
    sanitize_error_for_user,
)
from monitor_pprof.observability.logging.config import get_logger
from monitor_pprof.observability.profiling.capture import ProfileCaptureService

PROFILE_MEDIA_TYPE = "application/octet-stream"
CLIENT_CLOSED_REQUEST = 499


# Pydantic models for API responses
class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    service: str = Field(..., description="Service name")


class ErrorResponse(BaseModel):
    """Error body of a failed capture."""

    detail: str = Field(..., description="Error message")


PROFILE_RESPONSES = {
    200: {"content": {PROFILE_MEDIA_TYPE: {}}, "description": "pprof profile"},
    500: {"model": ErrorResponse, "description": "Service misconfigured"},
    502: {"model": ErrorResponse, "description": "Trace acquisition or decoding failed"},
    CLIENT_CLOSED_REQUEST: {"model": ErrorResponse, "description": "Capture cancelled"},
}


class PprofEndpoints:
    """pprof-compatible profiling endpoints."""

    def __init__(self, container: Container):
        """Initialize endpoints from the container."""
        self.container = container
        self.logger = get_logger(__name__)

        self.settings = container.get(ServiceSettings)
        self.capture_service = container.get(ProfileCaptureService)

        self.router = APIRouter(prefix="/debug/pprof", tags=["pprof"])
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes."""
        default_seconds = self.settings.controller.default_duration_seconds

        @self.router.get("/profile", response_class=Response, responses=PROFILE_RESPONSES)
        async def profile(
            request: Request,
            seconds: int = Query(default_seconds, ge=1, description="Trace duration in seconds"),
        ) -> Response:
            """Capture a CPU profile in pprof format."""
            self.logger.info(f"Profile requested for {seconds}s")
            payload = await self._capture(request, seconds)
            return Response(
                content=payload,
                media_type=PROFILE_MEDIA_TYPE,
                headers={"Content-Disposition": 'attachment; filename="profile"'},
            )

    async def _capture(self, request: Request, seconds: int) -> bytes:
        cancel_event = threading.Event()
        capture_task = asyncio.create_task(self.capture_service.capture(seconds, cancel_event))

        watcher: Optional[asyncio.Task] = None
        if self.settings.api.cancel_on_disconnect:
            watcher = asyncio.create_task(
                self._watch_disconnect(request, capture_task, cancel_event)
            )

        try:
            return await capture_task

        except asyncio.CancelledError:
            cancel_event.set()
            if watcher is not None and watcher.done() and not watcher.cancelled() and watcher.result():
                raise self._http_error(
                    ConversionCancelledError("Client disconnected", stage="request"),
                    CLIENT_CLOSED_REQUEST,
                )
            raise
        except ConversionCancelledError as e:
            raise self._http_error(e, CLIENT_CLOSED_REQUEST)
        except ConfigurationError as e:
            raise self._http_error(e, 500)
        except (TraceAcquisitionError, TraceDecodingError) as e:
            raise self._http_error(e, 502)
        except Exception as e:
            self.logger.exception(f"Profile capture failed: {str(e)}")
            raise HTTPException(status_code=500, detail=sanitize_error_for_user(e))
        finally:
            if watcher is not None:
                await self._stop_watcher(watcher)

    async def _watch_disconnect(
        self, request: Request, capture_task: asyncio.Task, cancel_event: threading.Event
    ) -> bool:
        """
        Cancel the capture when the client goes away.

        Returns:
            True if the client disconnected before the capture finished
        """
        interval = self.settings.api.disconnect_poll_interval
        while not capture_task.done():
            try:
                disconnected = await request.is_disconnected()
            except Exception as e:
                self.logger.warning(f"Disconnect check failed, no longer watching the client: {str(e)}")
                return False
            if disconnected:
                self.logger.info("Client disconnected, cancelling profile capture")
                cancel_event.set()
                capture_task.cancel()
                return True
            await asyncio.sleep(interval)
        return False

    async def _stop_watcher(self, watcher: asyncio.Task) -> None:
        if not watcher.done():
            watcher.cancel()
        try:
            await watcher
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.logger.warning(f"Disconnect watcher failed: {str(e)}")

    def _http_error(self, error: BaseProfilerError, status_code: int) -> HTTPException:
        if status_code == CLIENT_CLOSED_REQUEST:
            self.logger.info(f"Profile capture cancelled: {error.message}")
        else:
            self.logger.error(f"Profile capture failed [{error.error_code}]: {error.message}")
        return HTTPException(status_code=status_code, detail=sanitize_error_for_user(error))


def create_pprof_endpoints(container: Container) -> PprofEndpoints:
    """Create pprof endpoints instance."""
    return PprofEndpoints(container)
