"""Tests for the stack source to pprof conversion."""

import io
import logging
import threading

import pytest

from monitor_pprof.core.error_handling import ConversionCancelledError
from monitor_pprof.observability.profiling.converter import (
    CallStackSample,
    Const,
    CumulativeSample,
    FunctionRegistry,
    PERIOD_NANOSECONDS,
    PprofConverter,
    ProfileAssembler,
    SampleAggregator,
    StringTable,
)
from monitor_pprof.observability.profiling.pprof_format import Label, ValueType, decode_profile
from monitor_pprof.observability.profiling.stack_source import MemoryStackSource, StackSourceSample
from tests.support import ThreadedSourceBuilder, ns

# String ids fixed by the preset of every converter
SAMPLES, COUNT, CPU, NANOSECONDS, THREAD, UNKNOWN, CPU_TIME, UNMANAGED_CODE_TIME = range(1, 9)


def _names(converter: PprofConverter, location_ids):
    profile = converter.profile
    functions = {function.id: function for function in profile.functions}
    return [profile.string(functions[location_id].name) for location_id in location_ids]


def _thread_of(converter: PprofConverter, sample) -> str:
    (label,) = sample.labels
    assert converter.profile.string(label.key) == Const.THREAD
    return converter.profile.string(label.str)


class TestStringTable:
    """Test string interning."""

    def test_empty_string_is_index_zero(self):
        strings = StringTable()
        assert strings.intern("") == 0
        assert len(strings) == 1

    def test_preset_ids_are_sequential(self):
        strings = StringTable(Const.ALL)
        assert [strings[text] for text in Const.ALL] == list(range(1, 9))
        assert strings[Const.UNKNOWN] == UNKNOWN

    def test_intern_is_idempotent(self):
        strings = StringTable()
        first = strings.intern("Program.Main")
        assert strings.intern("Program.Main") == first
        assert strings.intern("Worker.Run") == first + 1
        assert strings.strings == ["", "Program.Main", "Worker.Run"]

    def test_lookup_of_unknown_string_raises(self):
        with pytest.raises(KeyError):
            StringTable()["missing"]


class TestFunctionRegistry:
    """Test function/location deduplication."""

    def test_ids_start_at_one(self):
        registry = FunctionRegistry(StringTable())
        assert registry.resolve(10, "A") == 1
        assert registry.resolve(11, "B") == 2
        assert len(registry) == 2

    def test_same_frame_resolves_once(self):
        strings = StringTable()
        registry = FunctionRegistry(strings)

        assert registry.resolve(3, "A") == registry.resolve(3, "A")
        assert len(registry.functions) == 1
        assert len(registry.locations) == 1
        assert registry.functions[0].name == strings["A"]

    def test_frames_are_keyed_by_index_not_name(self):
        registry = FunctionRegistry(StringTable())
        assert registry.resolve(1, "A") != registry.resolve(2, "A")

    def test_location_points_at_its_function(self):
        registry = FunctionRegistry(StringTable())
        location_id = registry.resolve(0, "A")

        location = registry.locations[0]
        assert location.id == location_id
        assert [line.function_id for line in location.lines] == [location_id]


class TestSamples:
    """Test raw and cumulative sample values."""

    def test_metric_is_converted_to_nanoseconds(self):
        sample = CallStackSample.from_source(StackSourceSample(4, 1.5, 12.0))
        assert sample == CallStackSample(stack_index=4, nanoseconds=1_500_000, time=12.0)

    def test_add_returns_a_new_sample(self):
        first = CumulativeSample.start(CallStackSample(1, 10, 0.0))
        merged = first.add(CallStackSample(1, 5, 1.0))

        assert first == CumulativeSample(1, 10, 1)
        assert merged == CumulativeSample(1, 15, 2)

    def test_can_add_only_same_stack(self):
        cumulative = CumulativeSample.start(CallStackSample(1, 10, 0.0))
        assert cumulative.can_add(CallStackSample(1, 1, 1.0))
        assert not cumulative.can_add(CallStackSample(2, 1, 1.0))

    def test_add_rejects_a_different_stack(self):
        cumulative = CumulativeSample.start(CallStackSample(1, 10, 0.0))
        with pytest.raises(ValueError, match="stack 2"):
            cumulative.add(CallStackSample(2, 1, 1.0))


class TestSampleAggregator:
    """Test merging of adjacent samples."""

    def test_empty_input(self):
        assert SampleAggregator().aggregate([]) == []
        assert SampleAggregator(flush_trailing=False).aggregate([]) == []

    def test_adjacent_runs_are_merged(self):
        samples = [CallStackSample(1, 10, 0.0), CallStackSample(1, 5, 1.0), CallStackSample(2, 7, 2.0)]

        assert SampleAggregator().aggregate(samples) == [
            CumulativeSample(1, 15, 2),
            CumulativeSample(2, 7, 1),
        ]

    def test_trailing_run_dropped_when_not_flushing(self):
        samples = [CallStackSample(1, 10, 0.0), CallStackSample(1, 5, 1.0), CallStackSample(2, 7, 2.0)]
        assert SampleAggregator(flush_trailing=False).aggregate(samples) == [CumulativeSample(1, 15, 2)]

    def test_single_run_without_flush_yields_nothing(self):
        samples = [CallStackSample(1, 10, 0.0), CallStackSample(1, 5, 1.0)]
        assert SampleAggregator(flush_trailing=False).aggregate(samples) == []

    def test_non_adjacent_runs_stay_separate(self):
        samples = [CallStackSample(1, 1, 0.0), CallStackSample(2, 2, 1.0), CallStackSample(1, 3, 2.0)]

        assert SampleAggregator().aggregate(samples) == [
            CumulativeSample(1, 1, 1),
            CumulativeSample(2, 2, 1),
            CumulativeSample(1, 3, 1),
        ]

    def test_samples_are_ordered_by_time(self):
        samples = [CallStackSample(2, 7, 2.0), CallStackSample(1, 10, 0.0), CallStackSample(1, 5, 1.0)]

        assert SampleAggregator().aggregate(samples) == [
            CumulativeSample(1, 15, 2),
            CumulativeSample(2, 7, 1),
        ]

    def test_equal_times_keep_input_order(self):
        samples = [CallStackSample(1, 1, 0.0), CallStackSample(2, 2, 0.0), CallStackSample(1, 3, 0.0)]
        assert [s.stack_index for s in SampleAggregator().aggregate(samples)] == [1, 2, 1]

    def test_count_and_nanoseconds_are_conserved(self):
        samples = [CallStackSample(i % 3, i, float(i)) for i in range(20)]
        cumulative = SampleAggregator().aggregate(samples)

        assert sum(c.count for c in cumulative) == 20
        assert sum(c.nanoseconds for c in cumulative) == sum(range(20))


class TestProfileAssembler:
    """Test stack walking and thread labelling."""

    def _assembler(self, source):
        strings = StringTable(Const.ALL)
        self.registry = FunctionRegistry(strings)
        return ProfileAssembler(source, strings, self.registry), strings

    def _function_names(self, strings):
        return [strings.strings[function.name] for function in self.registry.functions]

    def test_locations_are_leaf_first(self, source_builder: ThreadedSourceBuilder):
        stack_index = source_builder.stack(["Program.Main", "Worker.Run"])
        assembler, strings = self._assembler(source_builder.source)

        sample = assembler.build(CumulativeSample(stack_index, 100, 3))

        assert sample.location_ids == (1, 2, 3, 4)
        assert self._function_names(strings) == ["Worker.Run", "Program.Main", "Thread (42)", "Threads"]
        assert sample.values == (3, 100)

    def test_thread_label_is_frame_below_threads(self, source_builder: ThreadedSourceBuilder):
        stack_index = source_builder.stack(["Program.Main"])
        assembler, strings = self._assembler(source_builder.source)

        sample = assembler.build(CumulativeSample(stack_index, 1, 1))

        assert sample.labels == (Label(key=THREAD, str=strings["Thread (42)"]),)
        assert assembler.thread_marker_seen

    def test_missing_threads_frame_is_unknown(self):
        source = MemoryStackSource()
        stack_index = source.intern_stack(["Program.Main", "Worker.Run"])
        assembler, _ = self._assembler(source)

        sample = assembler.build(CumulativeSample(stack_index, 1, 1))

        assert sample.labels == (Label(key=THREAD, str=UNKNOWN),)
        assert not assembler.thread_marker_seen

    def test_threads_frame_at_leaf_is_unknown(self):
        source = MemoryStackSource()
        stack_index = source.intern_stack(["Threads"])
        assembler, _ = self._assembler(source)

        assert assembler.find_thread_name(stack_index) == Const.UNKNOWN

    def test_cpu_time_frames_are_filtered(self, source_builder: ThreadedSourceBuilder):
        stack_index = source_builder.stack(["Program.Main", Const.UNMANAGED_CODE_TIME, Const.CPU_TIME])
        assembler, strings = self._assembler(source_builder.source)

        sample = assembler.build(CumulativeSample(stack_index, 1, 1))

        assert len(sample.location_ids) == 3
        assert self._function_names(strings) == ["Program.Main", "Thread (42)", "Threads"]

    def test_unresolvable_caller_ends_walk(self):
        source = MemoryStackSource()
        stack_index = source.intern_chain(source.intern_frame("Worker.Run"), caller_index=99)
        assembler, _ = self._assembler(source)

        sample = assembler.build(CumulativeSample(stack_index, 1, 1))

        assert sample.location_ids == (1,)
        assert sample.labels[0].str == UNKNOWN

    def test_unknown_stack_index_yields_empty_stack(self):
        assembler, _ = self._assembler(MemoryStackSource())
        sample = assembler.build(CumulativeSample(12345, 1, 1))
        assert sample.location_ids == ()


class TestPprofConverter:
    """End-to-end conversion tests."""

    @pytest.fixture
    def example_source(self, source_builder: ThreadedSourceBuilder) -> MemoryStackSource:
        source_builder.sample(["Program.Main", "A"], nanoseconds=10, time=0.0)
        source_builder.sample(["Program.Main", "A"], nanoseconds=5, time=1.0)
        source_builder.sample(["Program.Main", "B"], nanoseconds=7, time=2.0)
        return source_builder.source

    def test_header(self):
        profile = PprofConverter(MemoryStackSource()).profile

        assert profile.period == PERIOD_NANOSECONDS == 1_000_000_000
        assert profile.period_type == ValueType(CPU, NANOSECONDS)
        assert profile.sample_types == (ValueType(SAMPLES, COUNT), ValueType(CPU, NANOSECONDS))
        assert profile.string_table[:9] == ("",) + Const.ALL

    def test_empty_source_yields_empty_profile(self, caplog):
        with caplog.at_level(logging.WARNING):
            converter = PprofConverter(MemoryStackSource())

        profile = converter.profile
        assert profile.samples == ()
        assert profile.functions == ()
        assert profile.locations == ()
        assert len(profile.string_table) == 9
        assert "Threads" not in caplog.text

    def test_example_with_trailing_flush(self, example_source):
        converter = PprofConverter(example_source)
        first, second = converter.profile.samples

        assert first.values == (2, 15)
        assert second.values == (1, 7)
        assert _names(converter, first.location_ids) == ["A", "Program.Main", "Thread (42)", "Threads"]
        assert _names(converter, second.location_ids) == ["B", "Program.Main", "Thread (42)", "Threads"]
        assert _thread_of(converter, first) == "Thread (42)"
        assert _thread_of(converter, second) == "Thread (42)"
        assert len(converter.profile.functions) == 5

    def test_example_without_trailing_flush(self, example_source):
        converter = PprofConverter(example_source, flush_trailing_sample=False)
        (only,) = converter.profile.samples

        assert only.values == (2, 15)
        assert _names(converter, only.location_ids) == ["A", "Program.Main", "Thread (42)", "Threads"]
        assert len(converter.profile.functions) == 4

    def test_ids_reference_existing_records(self, example_source):
        profile = PprofConverter(example_source).profile

        function_ids = {function.id for function in profile.functions}
        location_ids = {location.id for location in profile.locations}
        assert function_ids == location_ids == set(range(1, len(profile.functions) + 1))
        for sample in profile.samples:
            assert set(sample.location_ids) <= location_ids
        for function in profile.functions:
            assert 0 < function.name < len(profile.string_table)

    def test_repeated_stack_shares_locations(self, source_builder: ThreadedSourceBuilder):
        source_builder.sample(["A"], nanoseconds=1, time=0.0)
        source_builder.sample(["B"], nanoseconds=1, time=1.0)
        source_builder.sample(["A"], nanoseconds=1, time=2.0)

        samples = PprofConverter(source_builder.source).profile.samples

        assert len(samples) == 3
        assert samples[0].location_ids == samples[2].location_ids

    def test_missing_thread_marker_warns_once(self, caplog):
        source = MemoryStackSource()
        for time in range(3):
            source.add_sample(source.intern_stack(["Main", f"F{time}"]), ns(1), float(time))

        with caplog.at_level(logging.WARNING):
            converter = PprofConverter(source)

        assert all(_thread_of(converter, s) == Const.UNKNOWN for s in converter.profile.samples)
        warnings = [r for r in caplog.records if "Threads" in r.getMessage()]
        assert len(warnings) == 1

    def test_missing_thread_marker_warning_can_be_disabled(self, caplog):
        source = MemoryStackSource()
        source.add_sample(source.intern_stack(["Main"]), ns(1), 0.0)

        with caplog.at_level(logging.WARNING):
            PprofConverter(source, warn_on_missing_thread_marker=False)

        assert "Threads" not in caplog.text

    def test_cancellation_stops_conversion(self, example_source):
        cancel_event = threading.Event()
        cancel_event.set()

        with pytest.raises(ConversionCancelledError) as exc_info:
            PprofConverter(example_source, cancel_event=cancel_event)

        assert exc_info.value.stage == "conversion"

    def test_source_is_not_modified(self, example_source):
        before = []
        example_source.for_each(before.append)

        PprofConverter(example_source)

        after = []
        example_source.for_each(after.append)
        assert before == after

    def test_encoding_round_trip(self, example_source):
        converter = PprofConverter(example_source)

        assert decode_profile(converter.to_bytes()) == converter.profile

    def test_serialize_to_stream(self, example_source):
        converter = PprofConverter(example_source)
        sink = io.BytesIO()

        converter.serialize_to(sink)

        assert sink.getvalue() == converter.to_bytes()
