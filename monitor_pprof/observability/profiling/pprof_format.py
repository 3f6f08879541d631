"""
pprof Profile Format
Author: Drmusab
Last Modified: 2026-10-19 10:26:31 UTC

Value types for the ``perftools.profiles`` profile and their protocol-buffer
encoding. The message classes are generated at import time from a
``FileDescriptorProto`` that mirrors ``profile.proto`` field for field, so
the output is readable by ``go tool pprof`` and every other consumer of the
format.
"""

from dataclasses import dataclass, field
from typing import BinaryIO, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool
from google.protobuf.message_factory import GetMessageClass

PACKAGE = "perftools.profiles"

_F = descriptor_pb2.FieldDescriptorProto
_OPTIONAL = _F.LABEL_OPTIONAL
_REPEATED = _F.LABEL_REPEATED

# (message, [(field, number, type, label, message type)])
_MESSAGES = [
    ("Profile", [
        ("sample_type", 1, _F.TYPE_MESSAGE, _REPEATED, "ValueType"),
        ("sample", 2, _F.TYPE_MESSAGE, _REPEATED, "Sample"),
        ("mapping", 3, _F.TYPE_MESSAGE, _REPEATED, "Mapping"),
        ("location", 4, _F.TYPE_MESSAGE, _REPEATED, "Location"),
        ("function", 5, _F.TYPE_MESSAGE, _REPEATED, "Function"),
        ("string_table", 6, _F.TYPE_STRING, _REPEATED, None),
        ("drop_frames", 7, _F.TYPE_INT64, _OPTIONAL, None),
        ("keep_frames", 8, _F.TYPE_INT64, _OPTIONAL, None),
        ("time_nanos", 9, _F.TYPE_INT64, _OPTIONAL, None),
        ("duration_nanos", 10, _F.TYPE_INT64, _OPTIONAL, None),
        ("period_type", 11, _F.TYPE_MESSAGE, _OPTIONAL, "ValueType"),
        ("period", 12, _F.TYPE_INT64, _OPTIONAL, None),
        ("comment", 13, _F.TYPE_INT64, _REPEATED, None),
        ("default_sample_type", 14, _F.TYPE_INT64, _OPTIONAL, None),
    ]),
    ("ValueType", [
        ("type", 1, _F.TYPE_INT64, _OPTIONAL, None),
        ("unit", 2, _F.TYPE_INT64, _OPTIONAL, None),
    ]),
    ("Sample", [
        ("location_id", 1, _F.TYPE_UINT64, _REPEATED, None),
        ("value", 2, _F.TYPE_INT64, _REPEATED, None),
        ("label", 3, _F.TYPE_MESSAGE, _REPEATED, "Label"),
    ]),
    ("Label", [
        ("key", 1, _F.TYPE_INT64, _OPTIONAL, None),
        ("str", 2, _F.TYPE_INT64, _OPTIONAL, None),
        ("num", 3, _F.TYPE_INT64, _OPTIONAL, None),
        ("num_unit", 4, _F.TYPE_INT64, _OPTIONAL, None),
    ]),
    ("Mapping", [
        ("id", 1, _F.TYPE_UINT64, _OPTIONAL, None),
        ("memory_start", 2, _F.TYPE_UINT64, _OPTIONAL, None),
        ("memory_limit", 3, _F.TYPE_UINT64, _OPTIONAL, None),
        ("file_offset", 4, _F.TYPE_UINT64, _OPTIONAL, None),
        ("filename", 5, _F.TYPE_INT64, _OPTIONAL, None),
        ("build_id", 6, _F.TYPE_INT64, _OPTIONAL, None),
        ("has_functions", 7, _F.TYPE_BOOL, _OPTIONAL, None),
        ("has_filenames", 8, _F.TYPE_BOOL, _OPTIONAL, None),
        ("has_line_numbers", 9, _F.TYPE_BOOL, _OPTIONAL, None),
        ("has_inline_frames", 10, _F.TYPE_BOOL, _OPTIONAL, None),
    ]),
    ("Location", [
        ("id", 1, _F.TYPE_UINT64, _OPTIONAL, None),
        ("mapping_id", 2, _F.TYPE_UINT64, _OPTIONAL, None),
        ("address", 3, _F.TYPE_UINT64, _OPTIONAL, None),
        ("line", 4, _F.TYPE_MESSAGE, _REPEATED, "Line"),
        ("is_folded", 5, _F.TYPE_BOOL, _OPTIONAL, None),
    ]),
    ("Line", [
        ("function_id", 1, _F.TYPE_UINT64, _OPTIONAL, None),
        ("line", 2, _F.TYPE_INT64, _OPTIONAL, None),
    ]),
    ("Function", [
        ("id", 1, _F.TYPE_UINT64, _OPTIONAL, None),
        ("name", 2, _F.TYPE_INT64, _OPTIONAL, None),
        ("system_name", 3, _F.TYPE_INT64, _OPTIONAL, None),
        ("filename", 4, _F.TYPE_INT64, _OPTIONAL, None),
        ("start_line", 5, _F.TYPE_INT64, _OPTIONAL, None),
    ]),
]


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="profile.proto",
        package=PACKAGE,
        syntax="proto3",
    )
    for message_name, fields in _MESSAGES:
        message = file_proto.message_type.add(name=message_name)
        for name, number, field_type, label, type_name in fields:
            field_proto = message.field.add(name=name, number=number, type=field_type, label=label)
            if type_name:
                field_proto.type_name = f".{PACKAGE}.{type_name}"
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())

ProfileMessage = GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.Profile"))


@dataclass(frozen=True)
class ValueType:
    type: int
    unit: int


@dataclass(frozen=True)
class Function:
    id: int
    name: int


@dataclass(frozen=True)
class Line:
    function_id: int


@dataclass(frozen=True)
class Location:
    id: int
    lines: Tuple[Line, ...]


@dataclass(frozen=True)
class Label:
    key: int
    str: int


@dataclass(frozen=True)
class Sample:
    location_ids: Tuple[int, ...]
    labels: Tuple[Label, ...]
    values: Tuple[int, ...]


@dataclass(frozen=True)
class PprofProfile:
    """A complete profile; all string fields are indices into ``string_table``."""

    string_table: Tuple[str, ...]
    sample_types: Tuple[ValueType, ...]
    period_type: ValueType
    period: int
    functions: Tuple[Function, ...] = field(default_factory=tuple)
    locations: Tuple[Location, ...] = field(default_factory=tuple)
    samples: Tuple[Sample, ...] = field(default_factory=tuple)

    def string(self, index: int) -> str:
        return self.string_table[index]


def to_message(profile: PprofProfile):
    """Build the protocol-buffer message for a profile."""
    message = ProfileMessage()
    message.string_table.extend(profile.string_table)

    for value_type in profile.sample_types:
        message.sample_type.add(type=value_type.type, unit=value_type.unit)

    message.period_type.type = profile.period_type.type
    message.period_type.unit = profile.period_type.unit
    message.period = profile.period

    for function in profile.functions:
        message.function.add(id=function.id, name=function.name)

    for location in profile.locations:
        location_message = message.location.add(id=location.id)
        for line in location.lines:
            location_message.line.add(function_id=line.function_id)

    for sample in profile.samples:
        sample_message = message.sample.add(
            location_id=list(sample.location_ids),
            value=list(sample.values),
        )
        for label in sample.labels:
            sample_message.label.add(key=label.key, str=label.str)

    return message


def encode_profile(profile: PprofProfile) -> bytes:
    return to_message(profile).SerializeToString()


def write_profile(profile: PprofProfile, sink: BinaryIO) -> None:
    sink.write(encode_profile(profile))


def decode_profile(data: bytes) -> PprofProfile:
    """Parse wire bytes back into a ``PprofProfile``."""
    message = ProfileMessage.FromString(data)

    return PprofProfile(
        string_table=tuple(message.string_table),
        sample_types=tuple(ValueType(v.type, v.unit) for v in message.sample_type),
        period_type=ValueType(message.period_type.type, message.period_type.unit),
        period=message.period,
        functions=tuple(Function(f.id, f.name) for f in message.function),
        locations=tuple(
            Location(loc.id, tuple(Line(line.function_id) for line in loc.line))
            for loc in message.location
        ),
        samples=tuple(
            Sample(
                location_ids=tuple(s.location_id),
                labels=tuple(Label(label.key, label.str) for label in s.label),
                values=tuple(s.value),
            )
            for s in message.sample
        ),
    )
