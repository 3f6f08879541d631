"""
Trace Decoders
Author: Drmusab
Last Modified: 2026-10-19 12:03:51 UTC

A trace decoder turns a downloaded ``.nettrace`` file into a stack source.
The default decoder shells out to ``dotnet-trace convert`` to produce
speedscope JSON next to the trace and then loads that file.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from monitor_pprof.core.error_handling import ConfigurationError, TraceDecodingError
from monitor_pprof.observability.logging.config import get_logger
from monitor_pprof.observability.profiling.speedscope import load_speedscope
from monitor_pprof.observability.profiling.stack_source import StackSource


class TraceDecoder(ABC):
    """Turns a local trace artifact into a stack source."""

    @abstractmethod
    async def decode(self, trace_path: Path) -> StackSource:
        """Decode ``trace_path``; raise ``TraceDecodingError`` on failure."""


class DotnetTraceDecoder(TraceDecoder):
    """
    Decoder backed by the ``dotnet-trace`` command line tool.

    Args:
        command: Executable (and leading arguments) of the tool
    """

    def __init__(self, command: Sequence[str] = ("dotnet-trace",)):
        self.command: List[str] = list(command)
        self.logger = get_logger(__name__)

    async def decode(self, trace_path: Path) -> StackSource:
        trace_path = Path(trace_path)
        output_path = trace_path.with_suffix(".speedscope.json")

        cmd = self.command + [
            "convert",
            str(trace_path),
            "--format",
            "Speedscope",
            "-o",
            str(output_path),
        ]
        self.logger.info(f"Converting {trace_path.name} to speedscope")
        self.logger.debug(f"Running: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise TraceDecodingError(
                f"Cannot start trace converter {self.command[0]}: {e}", trace_path=str(trace_path)
            ) from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            error_msg = stderr.decode(errors="replace").strip() if stderr else "Unknown error"
            raise TraceDecodingError(
                f"Trace converter exited with {process.returncode}: {error_msg}",
                trace_path=str(trace_path),
            )

        speedscope_path = self._find_output(trace_path.parent, output_path)
        if speedscope_path is None:
            raise TraceDecodingError(
                "Trace converter produced no speedscope output", trace_path=str(trace_path)
            )

        return load_speedscope(speedscope_path)

    def _find_output(self, directory: Path, expected: Path) -> Optional[Path]:
        # Some tool versions append their own extension to -o
        if expected.exists():
            return expected
        for pattern in ("*.speedscope.json", "*.json"):
            matches = sorted(directory.glob(pattern))
            if matches:
                return matches[0]
        return None


class SpeedscopeDecoder(TraceDecoder):
    """Decoder for agents that already deliver speedscope JSON."""

    async def decode(self, trace_path: Path) -> StackSource:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, load_speedscope, Path(trace_path))


def create_trace_decoder(kind: str, command: Sequence[str]) -> TraceDecoder:
    """Build the decoder named by ``profiling.decoder.kind``."""
    if kind == "dotnet-trace":
        return DotnetTraceDecoder(command)
    elif kind == "speedscope":
        return SpeedscopeDecoder()
    raise ConfigurationError(
        f"Unknown trace decoder: {kind}", config_key="profiling.decoder.kind"
    )
