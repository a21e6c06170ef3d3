"""Prometheus remote-write protobuf messages.

The message classes are built at import time from a descriptor equivalent
to the subset of prompb ``types.proto``/``remote.proto`` used for writes:

    message Label        { string name = 1; string value = 2; }
    message Sample       { double value = 1; int64 timestamp = 2; }
    message TimeSeries   { repeated Label labels = 1; repeated Sample samples = 2; }
    message WriteRequest { repeated TimeSeries timeseries = 1; }
"""
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_F = descriptor_pb2.FieldDescriptorProto

PACKAGE = "prometheus"


def _add_field(message, name, number, field_type, label=_F.LABEL_OPTIONAL, type_name=None):
    f = message.field.add(name=name, number=number, type=field_type, label=label)
    if type_name:
        f.type_name = type_name


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto(
        name="rulewriter/remote.proto", package=PACKAGE, syntax="proto3"
    )

    label = fdp.message_type.add(name="Label")
    _add_field(label, "name", 1, _F.TYPE_STRING)
    _add_field(label, "value", 2, _F.TYPE_STRING)

    sample = fdp.message_type.add(name="Sample")
    _add_field(sample, "value", 1, _F.TYPE_DOUBLE)
    _add_field(sample, "timestamp", 2, _F.TYPE_INT64)

    series = fdp.message_type.add(name="TimeSeries")
    _add_field(series, "labels", 1, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, f".{PACKAGE}.Label")
    _add_field(series, "samples", 2, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, f".{PACKAGE}.Sample")

    request = fdp.message_type.add(name="WriteRequest")
    _add_field(request, "timeseries", 1, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, f".{PACKAGE}.TimeSeries")

    return fdp


# A private pool keeps these types clear of any other prometheus.* protos
# registered in the default pool.
_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


Label = _message_class("Label")
Sample = _message_class("Sample")
TimeSeries = _message_class("TimeSeries")
WriteRequest = _message_class("WriteRequest")
