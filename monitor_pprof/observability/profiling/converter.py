"""
Stack Source to pprof Converter
Author: Drmusab
Last Modified: 2026-10-19 11:05:09 UTC

This module converts the call-stack samples of a decoded trace into a pprof
profile. Adjacent samples with the same stack are merged into one cumulative
sample, every stack is walked from leaf to root into location ids, frames are
deduplicated into function/location records, and each sample is labelled with
the thread it ran on.

All tables are owned by one ``PprofConverter`` instance; build a new converter
for every trace.
"""

import threading
from dataclasses import dataclass, replace
from typing import BinaryIO, Dict, Iterable, List, Optional

from monitor_pprof.core.error_handling import ConversionCancelledError
from monitor_pprof.observability.logging.config import get_logger
from monitor_pprof.observability.profiling.pprof_format import (
    Function,
    Label,
    Line,
    Location,
    PprofProfile,
    Sample,
    ValueType,
    encode_profile,
    write_profile,
)
from monitor_pprof.observability.profiling.stack_source import (
    NO_INDEX,
    StackSource,
    StackSourceSample,
)

NANOSECONDS_PER_MILLISECOND = 1_000_000
PERIOD_NANOSECONDS = 1_000_000_000


class Const:
    """Well-known strings of the profile."""

    SAMPLES = "samples"
    COUNT = "count"
    CPU = "cpu"
    NANOSECONDS = "nanoseconds"
    THREAD = "thread"

    UNKNOWN = "--UNKNOWN--"

    CPU_TIME = "CPU_TIME"
    UNMANAGED_CODE_TIME = "UNMANAGED_CODE_TIME"

    # Frame under which the per-thread frames of a stack hang
    THREADS = "Threads"

    ALL = (SAMPLES, COUNT, CPU, NANOSECONDS, THREAD, UNKNOWN, CPU_TIME, UNMANAGED_CODE_TIME)

    # Synthetic leaf frames that would otherwise absorb all self time
    FILTERED_FRAME_NAMES = frozenset((CPU_TIME, UNMANAGED_CODE_TIME))


@dataclass(frozen=True)
class CallStackSample:
    """A raw sample with its metric converted to nanoseconds."""

    stack_index: int
    nanoseconds: int
    time: float

    @classmethod
    def from_source(cls, sample: StackSourceSample) -> "CallStackSample":
        return cls(
            sample.stack_index,
            int(round(sample.metric * NANOSECONDS_PER_MILLISECOND)),
            sample.time_relative_msec,
        )


@dataclass(frozen=True)
class CumulativeSample:
    """Adjacent raw samples of one stack, summed."""

    stack_index: int
    nanoseconds: int
    count: int

    @classmethod
    def start(cls, sample: CallStackSample) -> "CumulativeSample":
        return cls(sample.stack_index, sample.nanoseconds, 1)

    def can_add(self, sample: CallStackSample) -> bool:
        return sample.stack_index == self.stack_index

    def add(self, sample: CallStackSample) -> "CumulativeSample":
        if not self.can_add(sample):
            raise ValueError(
                f"Cannot merge stack {sample.stack_index} into a run of stack {self.stack_index}"
            )
        return replace(
            self,
            nanoseconds=self.nanoseconds + sample.nanoseconds,
            count=self.count + 1,
        )


class StringTable:
    """Interns strings; index 0 is always the empty string."""

    def __init__(self, preset: Iterable[str] = ()):
        self._strings: List[str] = [""]
        self._ids: Dict[str, int] = {"": 0}
        for text in preset:
            self.intern(text)

    def intern(self, text: str) -> int:
        string_id = self._ids.get(text)
        if string_id is None:
            string_id = len(self._strings)
            self._ids[text] = string_id
            self._strings.append(text)
        return string_id

    def __getitem__(self, text: str) -> int:
        return self._ids[text]

    def __len__(self) -> int:
        return len(self._strings)

    @property
    def strings(self) -> List[str]:
        return list(self._strings)


class FunctionRegistry:
    """Assigns one function and one location per frame identity."""

    def __init__(self, strings: StringTable):
        self._strings = strings
        self._ids: Dict[int, int] = {}
        self.functions: List[Function] = []
        self.locations: List[Location] = []

    def resolve(self, frame_index: int, frame_name: str) -> int:
        """
        Get the location id of a frame, creating its records on first sight.

        Args:
            frame_index: Frame identity from the stack source
            frame_name: Name recorded for the function if the frame is new

        Returns:
            Location id, equal to the function id
        """
        location_id = self._ids.get(frame_index)
        if location_id is not None:
            return location_id

        function = Function(id=len(self.functions) + 1, name=self._strings.intern(frame_name))
        self.functions.append(function)
        self.locations.append(Location(id=function.id, lines=(Line(function_id=function.id),)))
        self._ids[frame_index] = function.id
        return function.id

    def __len__(self) -> int:
        return len(self.functions)


class SampleAggregator:
    """Collapses time-ordered runs of identical stacks."""

    def __init__(self, flush_trailing: bool = True):
        self.flush_trailing = flush_trailing

    def aggregate(self, samples: Iterable[CallStackSample]) -> List[CumulativeSample]:
        """
        Merge adjacent samples sharing a stack index.

        Samples are sorted by time first (stable, so ties keep input order).
        With ``flush_trailing`` disabled the final run is not emitted.
        """
        cumulative_samples: List[CumulativeSample] = []
        current: Optional[CumulativeSample] = None

        for sample in sorted(samples, key=lambda s: s.time):
            if current is None:
                current = CumulativeSample.start(sample)
            elif current.can_add(sample):
                current = current.add(sample)
            else:
                cumulative_samples.append(current)
                current = CumulativeSample.start(sample)

        if current is not None and self.flush_trailing:
            cumulative_samples.append(current)

        return cumulative_samples


class ProfileAssembler:
    """Turns cumulative samples into pprof samples."""

    def __init__(self, source: StackSource, strings: StringTable, registry: FunctionRegistry):
        self._source = source
        self._strings = strings
        self._registry = registry
        self.thread_marker_seen = False

    def build(self, cumulative_sample: CumulativeSample) -> Sample:
        location_ids: List[int] = []

        for frame_index in self._walk(cumulative_sample.stack_index):
            frame_name = self._source.frame_name_of(frame_index)
            if frame_name in Const.FILTERED_FRAME_NAMES:
                continue
            location_ids.append(self._registry.resolve(frame_index, frame_name))

        thread_name = self.find_thread_name(cumulative_sample.stack_index)
        label = Label(key=self._strings.intern(Const.THREAD), str=self._strings.intern(thread_name))

        return Sample(
            location_ids=tuple(location_ids),
            labels=(label,),
            values=(cumulative_sample.count, cumulative_sample.nanoseconds),
        )

    def find_thread_name(self, stack_index: int) -> str:
        """Name of the frame directly below the ``Threads`` frame, if any."""
        previous_name = Const.UNKNOWN

        for frame_index in self._walk(stack_index):
            name = self._source.frame_name_of(frame_index)
            if name == Const.THREADS:
                self.thread_marker_seen = True
                return previous_name
            previous_name = name

        return Const.UNKNOWN

    def _walk(self, stack_index: int):
        """Yield frame indices from the leaf to the root."""
        while stack_index != NO_INDEX:
            frame_index = self._source.frame_index_of(stack_index)
            if frame_index == NO_INDEX:
                return
            yield frame_index
            stack_index = self._source.caller_of(stack_index)


class PprofConverter:
    """
    Builds a pprof profile from a stack source.

    Args:
        source: Decoded trace
        flush_trailing_sample: Emit the last cumulative sample as well
        warn_on_missing_thread_marker: Log a warning when no stack has a
            ``Threads`` frame, which leaves every sample labelled unknown
        cancel_event: Checked before each output sample; when set the
            conversion stops with ``ConversionCancelledError``
    """

    def __init__(
        self,
        source: StackSource,
        flush_trailing_sample: bool = True,
        warn_on_missing_thread_marker: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.logger = get_logger(__name__)
        self.strings = StringTable(Const.ALL)
        self.registry = FunctionRegistry(self.strings)

        self._period_type = ValueType(self.strings[Const.CPU], self.strings[Const.NANOSECONDS])
        self._sample_types = (
            ValueType(self.strings[Const.SAMPLES], self.strings[Const.COUNT]),
            ValueType(self.strings[Const.CPU], self.strings[Const.NANOSECONDS]),
        )

        raw_samples: List[CallStackSample] = []
        source.for_each(lambda sample: raw_samples.append(CallStackSample.from_source(sample)))

        aggregator = SampleAggregator(flush_trailing=flush_trailing_sample)
        assembler = ProfileAssembler(source, self.strings, self.registry)

        self.samples: List[Sample] = []
        for cumulative_sample in aggregator.aggregate(raw_samples):
            if cancel_event is not None and cancel_event.is_set():
                raise ConversionCancelledError(stage="conversion")
            self.samples.append(assembler.build(cumulative_sample))

        if self.samples and not assembler.thread_marker_seen and warn_on_missing_thread_marker:
            self.logger.warning(
                f"No '{Const.THREADS}' frame found in {len(self.samples)} samples; "
                f"all samples are labelled {Const.UNKNOWN}"
            )

        self.logger.debug(
            f"Converted {len(raw_samples)} raw samples into {len(self.samples)} samples "
            f"over {len(self.registry)} functions"
        )

        self.profile = PprofProfile(
            string_table=tuple(self.strings.strings),
            sample_types=self._sample_types,
            period_type=self._period_type,
            period=PERIOD_NANOSECONDS,
            functions=tuple(self.registry.functions),
            locations=tuple(self.registry.locations),
            samples=tuple(self.samples),
        )

    def to_bytes(self) -> bytes:
        return encode_profile(self.profile)

    def serialize_to(self, sink: BinaryIO) -> None:
        write_profile(self.profile, sink)
