"""
Diagnostics Agent Client
Author: Drmusab
Last Modified: 2026-10-19 12:31:14 UTC

Requests a CPU trace from a dotnet-monitor instance and streams the
response body into a local file.
"""

import asyncio
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import aiohttp

from monitor_pprof.core.error_handling import TraceAcquisitionError
from monitor_pprof.observability.logging.config import get_logger

CHUNK_SIZE = 64 * 1024


def build_trace_url(monitor_url: str, duration_seconds: int, profile: str = "Cpu") -> str:
    """
    Build the ``/trace`` URL of the agent.

    The path of ``monitor_url`` is replaced with ``/trace``; its query string
    is kept and ``durationSeconds`` and ``profile`` are appended.
    """
    parts = urlsplit(monitor_url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(("durationSeconds", str(duration_seconds)))
    query.append(("profile", profile))
    return urlunsplit((parts.scheme, parts.netloc, "/trace", urlencode(query), ""))


class TraceClient:
    """
    Streams traces from the diagnostics agent.

    Args:
        timeout_grace_seconds: Added to the trace duration to form the
            total request timeout
        session: Optional shared client session; one is created per
            download otherwise
    """

    def __init__(self, timeout_grace_seconds: float = 60.0, session: Optional[aiohttp.ClientSession] = None):
        self.timeout_grace_seconds = timeout_grace_seconds
        self._session = session
        self.logger = get_logger(__name__)

    async def download(self, url: str, destination: Path, duration_seconds: int) -> int:
        """
        Download a trace.

        Args:
            url: Full ``/trace`` URL
            destination: File the body is written to
            duration_seconds: Trace duration, used for the timeout

        Returns:
            Number of bytes written
        """
        timeout = aiohttp.ClientTimeout(total=duration_seconds + self.timeout_grace_seconds)

        try:
            if self._session is not None:
                return await self._download(self._session, url, destination, timeout)

            async with aiohttp.ClientSession() as session:
                return await self._download(session, url, destination, timeout)

        except aiohttp.ClientError as e:
            raise TraceAcquisitionError(f"Failed to fetch trace: {str(e)}", url=url) from e
        except asyncio.TimeoutError as e:
            raise TraceAcquisitionError(
                f"Timed out fetching a {duration_seconds}s trace", url=url
            ) from e

    async def _download(
        self,
        session: aiohttp.ClientSession,
        url: str,
        destination: Path,
        timeout: aiohttp.ClientTimeout,
    ) -> int:
        async with session.get(url, timeout=timeout) as response:
            if response.status != 200:
                body = await response.text(errors="replace")
                raise TraceAcquisitionError(
                    f"Agent returned {response.status}: {body[:512]}",
                    url=url,
                    status_code=response.status,
                )

            self.logger.info(f"Response received, streaming to {destination}")

            written = 0
            with open(destination, "wb") as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    f.write(chunk)
                    written += len(chunk)

        self.logger.debug(f"Wrote {written} bytes to {destination}")
        return written
