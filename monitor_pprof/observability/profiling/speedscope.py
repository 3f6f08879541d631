"""
Speedscope Loader
Author: Drmusab
Last Modified: 2026-10-19 11:40:26 UTC

Loads speedscope JSON (as written by ``dotnet-trace convert --format
Speedscope``) into a ``MemoryStackSource``.

dotnet-trace writes one evented profile per thread, in milliseconds. Every
stack is placed below a ``Threads`` frame and a frame named after the
profile, so the converter can label samples with their thread. Sampled
profiles are accepted as well.

Format reference:
https://github.com/jlfwong/speedscope/blob/main/src/lib/file-format-spec.ts
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from monitor_pprof.core.error_handling import TraceDecodingError
from monitor_pprof.observability.logging.config import get_logger
from monitor_pprof.observability.profiling.converter import Const
from monitor_pprof.observability.profiling.stack_source import MemoryStackSource

logger = get_logger(__name__)

# Multiplier from a speedscope unit to milliseconds
_UNIT_TO_MILLISECONDS = {
    "nanoseconds": 1e-6,
    "microseconds": 1e-3,
    "milliseconds": 1.0,
    "seconds": 1e3,
}


def load_speedscope(path: Union[str, Path]) -> MemoryStackSource:
    """
    Load a speedscope file.

    Args:
        path: Path of the ``.speedscope.json`` file

    Returns:
        Stack source holding every sample of every profile in the file
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, ValueError) as e:
        raise TraceDecodingError(f"Cannot read speedscope file {path}: {e}", trace_path=str(path)) from e

    return load_speedscope_document(document, str(path))


def load_speedscope_document(document: Dict[str, Any], origin: str = "<memory>") -> MemoryStackSource:
    """Build a stack source from an already parsed speedscope document."""
    try:
        frame_names = [frame["name"] for frame in document["shared"]["frames"]]
        profiles = document["profiles"]
    except (KeyError, TypeError) as e:
        raise TraceDecodingError(f"Malformed speedscope document: missing {e}", trace_path=origin) from e

    source = MemoryStackSource()
    threads_index = source.intern_stack([Const.THREADS])

    for position, profile in enumerate(profiles):
        try:
            _load_profile(source, profile, position, frame_names, threads_index, origin)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise TraceDecodingError(
                f"Malformed speedscope profile {position}: {type(e).__name__}: {e}", trace_path=origin
            ) from e

    logger.debug(f"Loaded {source.sample_count} samples from {len(profiles)} speedscope profiles")
    return source


def _load_profile(
    source: MemoryStackSource,
    profile: Dict[str, Any],
    position: int,
    frame_names: List[str],
    threads_index: int,
    origin: str,
) -> None:
    thread_name = profile.get("name") or f"Thread ({position})"
    thread_index = source.intern_stack([thread_name], threads_index)
    scale = _unit_scale(profile, origin)

    profile_type = profile.get("type")
    if profile_type == "evented":
        _load_evented(source, profile, frame_names, thread_index, scale, origin)
    elif profile_type == "sampled":
        _load_sampled(source, profile, frame_names, thread_index, scale, origin)
    else:
        raise TraceDecodingError(
            f"Unsupported speedscope profile type: {profile_type}", trace_path=origin
        )


def _unit_scale(profile: Dict[str, Any], origin: str) -> float:
    unit = profile.get("unit", "milliseconds")
    if unit not in _UNIT_TO_MILLISECONDS:
        raise TraceDecodingError(f"Unsupported speedscope unit: {unit}", trace_path=origin)
    return _UNIT_TO_MILLISECONDS[unit]


def _load_evented(
    source: MemoryStackSource,
    profile: Dict[str, Any],
    frame_names: List[str],
    thread_index: int,
    scale: float,
    origin: str,
) -> None:
    """Every interval between two events becomes one sample of the open stack."""
    # dotnet-trace writes startValue as a string
    last_at = float(profile.get("startValue", 0))
    open_frames: List[int] = []
    chain = [thread_index]

    for event in profile.get("events", []):
        at = float(event["at"])
        if at > last_at and open_frames:
            source.add_sample(chain[-1], (at - last_at) * scale, last_at * scale)
        last_at = at

        frame = event["frame"]
        if event["type"] == "O":
            open_frames.append(frame)
            frame_index = source.intern_frame(_frame_name(frame_names, frame, origin))
            chain.append(source.intern_chain(frame_index, chain[-1]))
        elif event["type"] == "C":
            if not open_frames or open_frames[-1] != frame:
                raise TraceDecodingError(
                    f"Unbalanced close event for frame {frame} in profile {profile.get('name')}",
                    trace_path=origin,
                )
            open_frames.pop()
            chain.pop()
        else:
            raise TraceDecodingError(f"Unexpected event type: {event['type']}", trace_path=origin)


def _load_sampled(
    source: MemoryStackSource,
    profile: Dict[str, Any],
    frame_names: List[str],
    thread_index: int,
    scale: float,
    origin: str,
) -> None:
    """Stacks are root first; sample times are startValue plus the running sum of weights."""
    samples = profile.get("samples", [])
    weights = profile.get("weights") or [1] * len(samples)
    if len(weights) != len(samples):
        raise TraceDecodingError("Speedscope samples and weights differ in length", trace_path=origin)

    at = float(profile.get("startValue", 0))
    for stack, weight in zip(samples, weights):
        names = [_frame_name(frame_names, frame, origin) for frame in stack]
        source.add_sample(source.intern_stack(names, thread_index), weight * scale, at * scale)
        at += weight


def _frame_name(frame_names: List[str], frame: int, origin: str) -> str:
    if not isinstance(frame, int) or not 0 <= frame < len(frame_names):
        raise TraceDecodingError(f"Unknown speedscope frame index: {frame}", trace_path=origin)
    return frame_names[frame]
