"""Data frames and the numeric collection reader.

A rule evaluation returns its result as a list of columnar frames. The
reader here interprets those frames as one of the numeric kinds and
flattens them into a collection of refs, one per labeled series.
"""
import logging
import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from rulewriter.errors import ExtractionError

logger = logging.getLogger(__name__)

KIND_NUMERIC_WIDE = "numeric-wide"
KIND_NUMERIC_MULTI = "numeric-multi"
KIND_NUMERIC_LONG = "numeric-long"

NUMERIC_KINDS = (KIND_NUMERIC_WIDE, KIND_NUMERIC_MULTI, KIND_NUMERIC_LONG)

FieldType = Literal["number", "string", "time", "boolean", "other"]


class FrameField(BaseModel):
    """A single column of a frame."""
    name: str = ""
    type: FieldType = "number"
    labels: Dict[str, str] = Field(default_factory=dict)
    values: List[Any] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.values)


class FrameMeta(BaseModel):
    """Frame metadata. Only the type indicator is read here."""
    type: Optional[str] = None


class Frame(BaseModel):
    """A columnar result block."""
    name: str = ""
    fields: List[FrameField] = Field(default_factory=list)
    meta: Optional[FrameMeta] = None

    def row_count(self) -> int:
        if not self.fields:
            return 0
        return len(self.fields[0])

    def fields_of_type(self, field_type: str) -> List[FrameField]:
        return [f for f in self.fields if f.type == field_type]


@dataclass
class NumericRef:
    """One labeled series of a numeric collection."""
    labels: Dict[str, str] = field(default_factory=dict)
    value: Optional[float] = None

    def nullable_float64_value(self) -> Tuple[Optional[float], bool]:
        """Return ``(value, empty)``; ``empty`` is True when there is no value."""
        return self.value, self.value is None

    def get_labels(self) -> Dict[str, str]:
        return self.labels


@dataclass
class NumericCollection:
    kind: str
    refs: List[NumericRef] = field(default_factory=list)


def _to_float(value: Any, field_name: str) -> Optional[float]:
    """Convert a number field value, keeping None as "no value"."""
    if value is None:
        return None
    # bool is an Integral, but never a valid sample
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ExtractionError(
            f"field '{field_name}' contains non-numeric value {value!r}"
        )
    return float(value)


class CollectionReader:
    """Reads a list of frames as a numeric collection of a given kind."""

    def __init__(self, kind: str, frames: Sequence[Frame]):
        self.kind = kind
        self.frames = list(frames)

    def get_collection(self, validate_data: bool = False) -> NumericCollection:
        """Build the collection.

        With ``validate_data`` set, refs sharing an identical label set are
        rejected as well.
        """
        non_empty = [f for f in self.frames if f.fields]
        for frame in non_empty:
            self._check_field_types(frame)

        if self.kind == KIND_NUMERIC_MULTI:
            refs = self._read_multi(non_empty)
        elif self.kind == KIND_NUMERIC_WIDE:
            refs = self._read_wide(non_empty)
        else:
            refs = self._read_long(non_empty)

        if validate_data:
            seen = set()
            for ref in refs:
                key = tuple(sorted(ref.labels.items()))
                if key in seen:
                    raise ExtractionError(
                        f"duplicate series with labels {dict(key)} in {self.kind} collection"
                    )
                seen.add(key)

        return NumericCollection(kind=self.kind, refs=refs)

    def _check_field_types(self, frame: Frame) -> None:
        allowed = ("number", "string") if self.kind == KIND_NUMERIC_LONG else ("number",)
        for f in frame.fields:
            if f.type not in allowed:
                raise ExtractionError(
                    f"{self.kind} frame '{frame.name}' has unsupported {f.type} field '{f.name}'"
                )

    def _read_multi(self, frames: List[Frame]) -> List[NumericRef]:
        refs = []
        for frame in frames:
            if len(frame.fields) != 1:
                raise ExtractionError(
                    f"{KIND_NUMERIC_MULTI} frame '{frame.name}' must have exactly one "
                    f"number field, got {len(frame.fields)}"
                )
            refs.extend(self._single_row_refs(frame))
        return refs

    def _read_wide(self, frames: List[Frame]) -> List[NumericRef]:
        if len(frames) > 1:
            raise ExtractionError(
                f"{KIND_NUMERIC_WIDE} collection must be a single frame, got {len(frames)}"
            )
        if not frames:
            return []
        return self._single_row_refs(frames[0])

    def _single_row_refs(self, frame: Frame) -> List[NumericRef]:
        refs = []
        for f in frame.fields:
            if len(f) > 1:
                raise ExtractionError(
                    f"{self.kind} field '{f.name}' must have at most one row, got {len(f)}"
                )
            value = _to_float(f.values[0], f.name) if f.values else None
            refs.append(NumericRef(labels=dict(f.labels), value=value))
        return refs

    def _read_long(self, frames: List[Frame]) -> List[NumericRef]:
        if len(frames) > 1:
            raise ExtractionError(
                f"{KIND_NUMERIC_LONG} collection must be a single frame, got {len(frames)}"
            )
        if not frames:
            return []

        frame = frames[0]
        rows = frame.row_count()
        if any(len(f) != rows for f in frame.fields):
            raise ExtractionError(
                f"{KIND_NUMERIC_LONG} frame '{frame.name}' has fields of different lengths"
            )

        string_fields = frame.fields_of_type("string")
        number_fields = frame.fields_of_type("number")
        refs = []
        for row in range(rows):
            row_labels = {}
            for sf in string_fields:
                v = sf.values[row]
                if v is not None:
                    row_labels[sf.name] = str(v)
            for nf in number_fields:
                labels = dict(nf.labels)
                if len(number_fields) > 1:
                    labels["__name__"] = nf.name
                labels.update(row_labels)
                refs.append(NumericRef(labels=labels, value=_to_float(nf.values[row], nf.name)))
        return refs


def _infer_kind(frames: Sequence[Frame]) -> str:
    if len(frames) == 1:
        frame = frames[0]
        if frame.fields_of_type("string"):
            return KIND_NUMERIC_LONG
        if len(frame.fields) > 1:
            return KIND_NUMERIC_WIDE
    return KIND_NUMERIC_MULTI


def collection_reader_from_frames(frames: Optional[Sequence[Frame]]) -> CollectionReader:
    """Pick the numeric kind for ``frames`` and return a reader for it."""
    frames = list(frames or [])
    declared = {f.meta.type for f in frames if f.meta is not None and f.meta.type}

    if len(declared) > 1:
        raise ExtractionError(f"frames declare mixed types: {sorted(declared)}")

    if declared:
        kind = declared.pop()
        if kind not in NUMERIC_KINDS:
            raise ExtractionError(f"unsupported frame type '{kind}', expected one of {NUMERIC_KINDS}")
    else:
        kind = _infer_kind(frames)
        logger.debug(f"No frame type declared, read as {kind}")

    return CollectionReader(kind, frames)
