from __future__ import annotations

import pytest

from eztags import policy
from eztags.schema import DOUBLE, INT, POINT_LIST, REPEATED, FieldSpec, Section


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("AC1015", 1015),
        ("ac1009", 1009),
        ("R2000", 1015),
        ("2000", 1015),
        ("1015", 1015),
        ("R2018", 1032),
        (1021, 1021),
    ],
)
def test_parse_version_accepts_common_spellings(value: object, expected: int) -> None:
    assert policy.parse_version(value) == expected


@pytest.mark.parametrize("value", ["", "R99", "AC12", 42, "latest"])
def test_parse_version_rejects_garbage(value: object) -> None:
    with pytest.raises(ValueError, match="unsupported DXF version"):
        policy.parse_version(value)


def test_version_names() -> None:
    assert policy.version_name(policy.R2000) == "AC1015"
    assert policy.release_name(policy.R12) == "R12"
    assert policy.release_name(policy.R2018) == "R2018"
    assert policy.release_name(1999) == "AC1999"


def test_marker_and_app_group_thresholds() -> None:
    assert not policy.markers_active(policy.R12)
    assert policy.markers_active(policy.R13)
    assert not policy.app_groups_active(policy.R13)
    assert policy.app_groups_active(policy.R14)


def test_field_activity_is_inclusive() -> None:
    legacy = FieldSpec(38, "elevation", DOUBLE, max_version=policy.R12)
    modern = FieldSpec(370, "lineweight", INT, min_version=policy.R2000)

    assert policy.is_field_active(legacy, policy.R12)
    assert not policy.is_field_active(legacy, policy.R13)
    assert not policy.is_field_active(modern, policy.R14)
    assert policy.is_field_active(modern, policy.R2000)
    assert policy.is_section_active(Section("AcDb3dSolid", (), min_version=policy.R2007), policy.R2018)


def test_default_for_returns_fresh_lists() -> None:
    knots = FieldSpec(40, "knots", DOUBLE, REPEATED)
    points = FieldSpec(10, "points", DOUBLE, POINT_LIST)

    first = policy.default_for(knots)
    first.append(1.0)

    assert policy.default_for(knots) == []
    assert policy.default_for(points) == []
    assert policy.default_for(FieldSpec(62, "color", INT, default=policy.COLOR_BYLAYER)) == 256


def test_is_default_compares_doubles_numerically() -> None:
    scale = FieldSpec(48, "linetype_scale", DOUBLE, default=policy.DEFAULT_LINETYPE_SCALE)

    assert policy.is_default(scale, 1)
    assert policy.is_default(scale, 1.0)
    assert not policy.is_default(scale, 1.5)
    assert policy.is_default(FieldSpec(5, "handle", INT), None)


def test_schema_activity_follows_first_release() -> None:
    from eztags.catalog import HELIX, LINE, SPLINE

    assert policy.is_schema_active(LINE, policy.R12)
    assert not policy.is_schema_active(SPLINE, policy.R12)
    assert policy.is_schema_active(SPLINE, policy.R13)
    assert not policy.is_schema_active(HELIX, policy.R2004)
    assert policy.is_schema_active(HELIX, policy.R2018)
