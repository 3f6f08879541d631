"""
Call-Stack Sample Sources
Author: Drmusab
Last Modified: 2026-10-19 10:02:55 UTC

A stack source is the read-only view of a decoded trace that the pprof
converter consumes. Call stacks are stored as chains: every chain index names
one frame plus the chain index of its caller, so a whole stack is reached by
following ``caller_of`` from the leaf until ``NO_INDEX``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

# Sentinel for "no caller" and for unresolvable indices
NO_INDEX = -1


@dataclass(frozen=True)
class StackSourceSample:
    """One raw sample as produced by a decoder."""

    stack_index: int
    metric: float  # milliseconds
    time_relative_msec: float


class StackSource(ABC):
    """Read-only capability over a decoded trace."""

    @abstractmethod
    def for_each(self, visit: Callable[[StackSourceSample], None]) -> None:
        """Invoke ``visit`` once per sample, in source order."""

    @abstractmethod
    def frame_name_of(self, frame_index: int) -> str:
        """Human-readable name of a frame."""

    @abstractmethod
    def frame_index_of(self, chain_index: int) -> int:
        """Frame at a chain position, or ``NO_INDEX`` if unknown."""

    @abstractmethod
    def caller_of(self, chain_index: int) -> int:
        """Chain index of the caller, or ``NO_INDEX`` at the root."""


class MemoryStackSource(StackSource):
    """
    In-memory stack source.

    Frames are interned by name and chains by ``(frame, caller)`` so identical
    stacks share chain indices, which is what lets the converter merge
    adjacent samples by index.
    """

    def __init__(self):
        self._frame_names: List[str] = []
        self._frame_ids: Dict[str, int] = {}
        self._chains: List[Tuple[int, int]] = []
        self._chain_ids: Dict[Tuple[int, int], int] = {}
        self._samples: List[StackSourceSample] = []

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def intern_frame(self, name: str) -> int:
        frame_index = self._frame_ids.get(name)
        if frame_index is None:
            frame_index = len(self._frame_names)
            self._frame_names.append(name)
            self._frame_ids[name] = frame_index
        return frame_index

    def intern_chain(self, frame_index: int, caller_index: int = NO_INDEX) -> int:
        key = (frame_index, caller_index)
        chain_index = self._chain_ids.get(key)
        if chain_index is None:
            chain_index = len(self._chains)
            self._chains.append(key)
            self._chain_ids[key] = chain_index
        return chain_index

    def intern_stack(self, frames: Sequence[str], caller_index: int = NO_INDEX) -> int:
        """
        Intern a stack given root first and return the leaf chain index.

        Args:
            frames: Frame names ordered from the outermost caller to the leaf
            caller_index: Chain the stack hangs below

        Returns:
            Chain index of the leaf frame (``caller_index`` for an empty stack)
        """
        chain_index = caller_index
        for name in frames:
            chain_index = self.intern_chain(self.intern_frame(name), chain_index)
        return chain_index

    def add_sample(self, stack_index: int, metric: float, time_relative_msec: float) -> StackSourceSample:
        sample = StackSourceSample(stack_index, metric, time_relative_msec)
        self._samples.append(sample)
        return sample

    def for_each(self, visit: Callable[[StackSourceSample], None]) -> None:
        for sample in self._samples:
            visit(sample)

    def frame_name_of(self, frame_index: int) -> str:
        if 0 <= frame_index < len(self._frame_names):
            return self._frame_names[frame_index]
        return ""

    def frame_index_of(self, chain_index: int) -> int:
        if 0 <= chain_index < len(self._chains):
            return self._chains[chain_index][0]
        return NO_INDEX

    def caller_of(self, chain_index: int) -> int:
        if 0 <= chain_index < len(self._chains):
            return self._chains[chain_index][1]
        return NO_INDEX
