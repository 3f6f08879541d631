"""Helpers shared by the test modules."""

from typing import List, Sequence

from monitor_pprof.observability.profiling.converter import Const
from monitor_pprof.observability.profiling.stack_source import NO_INDEX, MemoryStackSource, StackSource

NANOSECONDS_PER_MILLISECOND = 1_000_000


def ns(nanoseconds: int) -> float:
    """Express a nanosecond duration as the millisecond metric of a stack source."""
    return nanoseconds / NANOSECONDS_PER_MILLISECOND


def frame_names_of(source: StackSource, stack_index: int) -> List[str]:
    """Frame names of a stack, leaf first."""
    names = []
    while stack_index != NO_INDEX:
        frame_index = source.frame_index_of(stack_index)
        if frame_index == NO_INDEX:
            break
        names.append(source.frame_name_of(frame_index))
        stack_index = source.caller_of(stack_index)
    return names


def collect_samples(source: StackSource) -> list:
    samples = []
    source.for_each(samples.append)
    return samples


class ThreadedSourceBuilder:
    """Builds stack sources whose stacks hang below ``Threads`` / thread name."""

    def __init__(self, thread_name: str = "Thread (42)"):
        self.source = MemoryStackSource()
        self.thread_index = self.source.intern_stack([Const.THREADS, thread_name])

    def stack(self, frames: Sequence[str]) -> int:
        return self.source.intern_stack(frames, self.thread_index)

    def sample(self, frames: Sequence[str], nanoseconds: int, time: float) -> int:
        stack_index = self.stack(frames)
        self.source.add_sample(stack_index, ns(nanoseconds), time)
        return stack_index
