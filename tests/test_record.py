from __future__ import annotations

import pytest

from eztags.catalog import LINE, SPLINE, STYLE
from eztags.record import Point, Record


def test_new_record_holds_schema_defaults() -> None:
    record = Record(LINE)

    assert record.dxftype == "LINE"
    assert record["layer"] == "0"
    assert record["linetype"] == "BYLAYER"
    assert record["color"] == 256
    assert record["start"] is None
    assert record["graphics_data"] == []
    assert record.handle is None


def test_set_converts_points_and_lists() -> None:
    record = Record(SPLINE, {"control_points": [(0, 0), (1, 2, 3)], "knots": (0, 0, 1, 1)})

    assert record["control_points"] == [Point(0.0, 0.0, 0.0), Point(1.0, 2.0, 3.0)]
    assert record["knots"] == [0, 0, 1, 1]
    assert isinstance(record["control_points"][0], Point)


def test_set_rejects_count_fields_and_unknown_names() -> None:
    record = Record(SPLINE)

    with pytest.raises(KeyError, match="derived"):
        record.set("knot_count", 4)
    with pytest.raises(KeyError):
        record.set("nonsense", 1)


def test_append_requires_repeated_field() -> None:
    record = Record(SPLINE)
    record.append("fit_points", (1.0, 1.0, 0.0))

    assert record["fit_points"] == [Point(1.0, 1.0, 0.0)]
    with pytest.raises(TypeError):
        record.append("degree", 3)


def test_named_bits() -> None:
    record = Record(STYLE, {"name": "Standard", "flags": 5})

    assert record.has_bit("flags", "shape_file")
    assert record.has_bit("flags", "vertical_text")
    assert not record.has_bit("flags", 1)
    record.set_bit("flags", "referenced")
    record.set_bit("flags", "shape_file", False)
    assert record["flags"] == 4 | 64
    with pytest.raises(KeyError, match="no bit named"):
        record.has_bit("flags", "bold")


def test_frozen_record_rejects_writes_but_copy_is_editable() -> None:
    record = Record(LINE, {"start": (0, 0, 0), "end": (1, 1, 0)}).freeze()

    with pytest.raises(RuntimeError, match="frozen"):
        record["layer"] = "WALLS"

    clone = record.copy()
    clone["layer"] = "WALLS"
    assert clone["layer"] == "WALLS"
    assert record["layer"] == "0"
    assert clone != record


def test_release_counts_points_and_buffers() -> None:
    record = Record(SPLINE, {"control_points": [(0, 0, 0), (1, 0, 0), (2, 1, 0)], "start_tangent": (1, 0, 0)})

    points, buffers = record.release()

    # normal vector default, start tangent and three control points
    assert points == 5
    assert buffers == 1
    assert record.released
    assert record.release() == (0, 0)
    with pytest.raises(RuntimeError, match="released"):
        record.set("degree", 2)


def test_points_lists_every_point_value() -> None:
    record = Record(LINE, {"start": (0, 0, 0), "end": (1, 1, 0)})

    assert record.points() == [Point(0, 0, 0), Point(1, 1, 0), Point(0.0, 0.0, 1.0)]


def test_repr_and_equality() -> None:
    first = Record(LINE, {"handle": 0x2A})
    second = Record(LINE, {"handle": 0x2A})

    assert repr(first) == "<Record LINE #2A>"
    assert first == second
    with pytest.raises(TypeError):
        hash(first)
