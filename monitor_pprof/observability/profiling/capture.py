"""
Profile Capture Service
Author: Drmusab
Last Modified: 2026-10-19 12:58:40 UTC

Runs one capture end to end: download a CPU trace from the diagnostics
agent into a temporary directory, decode it into a stack source, convert it
to pprof, and compress the result. The temporary directory is removed
whether or not the capture succeeds.
"""

import asyncio
import gzip
import io
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional

from monitor_pprof.core.config.settings import ServiceSettings
from monitor_pprof.core.error_handling import ConversionCancelledError
from monitor_pprof.observability.logging.config import get_logger
from monitor_pprof.observability.profiling.converter import PprofConverter
from monitor_pprof.observability.profiling.stack_source import StackSource
from monitor_pprof.observability.profiling.trace_client import TraceClient, build_trace_url
from monitor_pprof.observability.profiling.trace_decoder import TraceDecoder

TRACE_FILE_NAME = "profile.nettrace"


class ProfileCaptureService:
    """Captures pprof CPU profiles from a dotnet-monitor agent."""

    def __init__(self, settings: ServiceSettings, trace_client: TraceClient, decoder: TraceDecoder):
        self.settings = settings
        self.trace_client = trace_client
        self.decoder = decoder
        self.logger = get_logger(__name__)

    async def capture(self, seconds: int, cancel_event: Optional[threading.Event] = None) -> bytes:
        """
        Capture a profile.

        Args:
            seconds: Trace duration requested from the agent
            cancel_event: Set by the caller to abandon the capture

        Returns:
            Encoded profile, gzip-compressed when output compression is enabled
        """
        cancel_event = cancel_event or threading.Event()
        controller = self.settings.controller
        url = build_trace_url(controller.require_monitor_url(), seconds, controller.trace_profile)

        temp_dir = Path(tempfile.mkdtemp(prefix="monitor-pprof-", dir=controller.temp_dir))
        start_time = time.perf_counter()
        try:
            self.logger.debug(f"Using temporary directory: {temp_dir}")

            trace_path = temp_dir / TRACE_FILE_NAME
            await self.trace_client.download(url, trace_path, seconds)
            self._check_cancelled(cancel_event, "download")

            self.logger.info(f"Decoding {trace_path.name}")
            source = await self.decoder.decode(trace_path)
            self._check_cancelled(cancel_event, "decode")

            self.logger.info("Converting stack samples to pprof")
            loop = asyncio.get_running_loop()
            payload = await loop.run_in_executor(None, self._encode, source, cancel_event)

            self.logger.info(
                f"Profile of {seconds}s captured in {time.perf_counter() - start_time:.2f}s "
                f"({len(payload)} bytes)"
            )
            return payload

        except asyncio.CancelledError:
            cancel_event.set()
            raise
        finally:
            self._cleanup(temp_dir)

    def _encode(self, source: StackSource, cancel_event: threading.Event) -> bytes:
        conversion = self.settings.conversion
        converter = PprofConverter(
            source,
            flush_trailing_sample=conversion.flush_trailing_sample,
            warn_on_missing_thread_marker=conversion.warn_on_missing_thread_marker,
            cancel_event=cancel_event,
        )
        self._check_cancelled(cancel_event, "conversion")

        output = self.settings.output
        if not output.compress:
            return converter.to_bytes()

        self.logger.info("Compressing profile")
        buffer = io.BytesIO()
        with gzip.GzipFile(fileobj=buffer, mode="wb", compresslevel=output.compression_level) as gzip_file:
            converter.serialize_to(gzip_file)
        return buffer.getvalue()

    def _check_cancelled(self, cancel_event: threading.Event, stage: str) -> None:
        if cancel_event.is_set():
            raise ConversionCancelledError(stage=stage)

    def _cleanup(self, temp_dir: Path) -> None:
        try:
            shutil.rmtree(temp_dir)
        except OSError as e:
            self.logger.warning(f"Failed to remove temporary directory {temp_dir}: {e}")
