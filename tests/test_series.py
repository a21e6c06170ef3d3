#!/usr/bin/env python3
"""Tests for converting frames into points."""
import math
from datetime import datetime, timezone

import pytest

from rulewriter.errors import ExtractionError
from rulewriter.frames import Frame, FrameMeta
from rulewriter.series import Metric, Point, points_from_frames

from conftest import multi_frame

T = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


def test_one_point_per_series_in_order():
    frames = [multi_frame({"host": h}, float(i)) for i, h in enumerate("abcde")]
    points = points_from_frames("cpu_usage", T, frames, {})

    assert len(points) == 5
    assert [p.labels["host"] for p in points] == list("abcde")
    for p in points:
        assert p.name == "cpu_usage"
        assert p.metric.t == T


def test_values_pass_through_and_null_becomes_nan():
    frames = [multi_frame({"host": "a"}, 0.1 + 0.2), multi_frame({"host": "b"}, None)]
    points = points_from_frames("m", T, frames, None)

    assert points[0].metric.v == 0.1 + 0.2
    assert math.isnan(points[1].metric.v)


def test_name_label_is_dropped():
    frames = [multi_frame({"__name__": "from_data", "host": "a"}, 1)]
    points = points_from_frames("real_name", T, frames, {})

    assert "__name__" not in points[0].labels
    assert points[0].name == "real_name"


def test_extra_labels_override_data_labels():
    frames = [multi_frame({"host": "a", "env": "dev"}, 1), multi_frame({"host": "b"}, 2)]
    points = points_from_frames("m", T, frames, {"env": "prod", "team": "infra"})

    assert points[0].labels == {"host": "a", "env": "prod", "team": "infra"}
    assert points[1].labels == {"host": "b", "env": "prod", "team": "infra"}


def test_labels_are_copied():
    data_labels = {"host": "a", "__name__": "x"}
    frames = [multi_frame(data_labels, 1)]
    points = points_from_frames("m", T, frames, {"env": "prod"})

    points[0].labels["host"] = "changed"
    assert frames[0].fields[0].labels == {"host": "a", "__name__": "x"}


def test_malformed_frames_raise_extraction_error():
    with pytest.raises(ExtractionError):
        points_from_frames("m", T, [Frame(meta=FrameMeta(type="bogus"))], {})


def test_empty_result_gives_no_points():
    assert points_from_frames("m", T, [], {"env": "prod"}) == []


def test_point_requires_metric():
    with pytest.raises(TypeError):
        Point(name="m", labels={})

    p = Point(name="m", labels={}, metric=Metric(t=T, v=1.0))
    assert p.metric.t == T
