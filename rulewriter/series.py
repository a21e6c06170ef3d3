"""Data structures for metric points and the frame-to-point extractor."""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from rulewriter.frames import Frame, collection_reader_from_frames

NAME_LABEL = "__name__"


@dataclass(frozen=True)
class Metric:
    """A single sample. ``v`` is NaN when the series had no value."""
    t: datetime
    v: float


@dataclass
class Point:
    """A single point in time for a Prometheus time series."""
    name: str
    labels: Dict[str, str]
    metric: Metric


def points_from_frames(
    name: str,
    t: datetime,
    frames: Sequence[Frame],
    extra_labels: Optional[Mapping[str, str]] = None,
) -> List[Point]:
    """Convert rule evaluation frames into points named ``name`` at ``t``.

    One point is produced per series, in collection order. A missing value
    becomes NaN. Any ``__name__`` label carried by the data is dropped, and
    ``extra_labels`` win over data labels with the same key.
    """
    reader = collection_reader_from_frames(frames)
    collection = reader.get_collection(validate_data=False)

    points = []
    for ref in collection.refs:
        # Use NaN if the value is empty or None.
        v = math.nan
        value, empty = ref.nullable_float64_value()
        if not empty and value is not None:
            v = value

        labels = dict(ref.get_labels() or {})
        labels.pop(NAME_LABEL, None)
        if extra_labels:
            labels.update(extra_labels)

        points.append(Point(name=name, labels=labels, metric=Metric(t=t, v=v)))

    return points
