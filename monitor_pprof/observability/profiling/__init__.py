"""
Profiling module: stack sources, pprof conversion and trace capture.
"""

from .converter import PprofConverter
from .pprof_format import PprofProfile, decode_profile, encode_profile
from .stack_source import NO_INDEX, MemoryStackSource, StackSource, StackSourceSample

__all__ = [
    "PprofConverter",
    "PprofProfile",
    "decode_profile",
    "encode_profile",
    "NO_INDEX",
    "MemoryStackSource",
    "StackSource",
    "StackSourceSample",
]
