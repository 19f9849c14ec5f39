from __future__ import annotations

import pytest

from eztags.catalog import FACE_3D, HELIX, LAYER, LAYER_INDEX, LINE, REGISTRY, SOLID_3D, STYLE, TABLE
from eztags.decoder import decode
from eztags.encoder import Encoder, encode
from eztags.errors import INACTIVE_GROUP_CODE, SchemaViolation
from eztags.policy import R12, R13, R14, R2000, R2004, R2007, R2010, R2013, R2018, is_schema_active
from eztags.record import Record
from eztags.schema import EntitySchema
from eztags.tokens import Token

VERSIONS = (R12, R13, R14, R2000, R2004, R2007, R2010, R2013, R2018)
MODERN = (R2000, R2004, R2007, R2010, R2013, R2018)


def _roundtrip(record: Record, version: int, **encoder_options) -> Record:
    tokens = Encoder(version, **encoder_options).encode(record)
    assert tokens[0] == Token(0, record.dxftype)
    return decode(tokens[1:] + [Token(0, "EOF")], record.schema, version).record


def _samples(version: int) -> list[Record]:
    return [record for record in _all_samples() if is_schema_active(record.schema, version)]


def _all_samples() -> list[Record]:
    return [
        Record(
            FACE_3D,
            {
                "handle": 0x2A,
                "vtx0": (0, 0, 0),
                "vtx1": (1, 0, 0),
                "vtx2": (1, 1, 0),
                "vtx3": (0, 1, 0),
                "invisible_edges": 3,
            },
        ),
        Record(LINE, {"handle": 0x30, "layer": "WALLS", "color": 1, "start": (0.1, 0.2, 0.3), "end": (1e6, -2.5, 0)}),
        Record(LAYER, {"handle": 0x10, "name": "WALLS", "flags": 4, "color": 3, "linetype": "DASHED"}),
        Record(STYLE, {"handle": 0x11, "name": "Standard", "flags": 5, "font": "romans.shx"}),
        Record(
            TABLE,
            {
                "handle": 0x50,
                "block_name": "*T1",
                "row_heights": [1.0, 2.0],
                "column_widths": [4.0, 4.0, 4.0],
            },
        ),
    ]


@pytest.mark.parametrize("version", VERSIONS)
def test_roundtrip_preserves_values(version: int) -> None:
    for record in _samples(version):
        decoded = _roundtrip(record, version)
        assert decoded == record, record.dxftype
        assert decoded.unknown_tags == []


@pytest.mark.parametrize("version", VERSIONS)
def test_encoding_twice_is_identical(version: int) -> None:
    encoder = Encoder(version)
    for record in _samples(version):
        first = encoder.encode(record)
        again = encoder.encode(_roundtrip(record, version))
        assert first == again


@pytest.mark.parametrize("version", MODERN)
def test_app_groups_roundtrip(version: int) -> None:
    record = Record(
        LAYER_INDEX,
        {
            "handle": 0x3F,
            "reactors": [0x1A],
            "xdictionary": 0x40,
            "owner": 0x1A,
            "timestamp": 2451544.5,
            "layer_names": ["L1", "L2", "L3"],
            "id_buffers": [0xA1, 0xA2, 0xA3],
            "entry_counts": [3, 1, 7],
        },
    )

    assert _roundtrip(record, version) == record


def test_helix_roundtrip_with_shared_codes() -> None:
    record = Record(
        HELIX,
        {
            "handle": 0x60,
            "degree": 3,
            "knots": [0, 0, 0, 0, 1, 1, 1, 1],
            "control_points": [(1, 0, 0), (1, 1, 0.5), (0, 1, 1), (-1, 0, 1.5)],
            "axis_base_point": (0, 0, 0),
            "start_point": (1, 0, 0),
            "radius": 1.0,
            "turns": 0.5,
            "turn_height": 3.0,
        },
    )

    decoded = _roundtrip(record, R2007)

    assert decoded == record
    assert decoded["knots"] == [0.0] * 4 + [1.0] * 4
    assert decoded["radius"] == 1.0
    assert decoded["start_tangent"] is None


def test_solid_history_is_version_gated() -> None:
    record = Record(SOLID_3D, {"handle": 0x70, "acis_data": ["line one", "line two"], "history": 0x71})

    assert _roundtrip(record, R2007) == record
    assert 350 not in [token.code for token in encode(record, SOLID_3D, R2000)]


def test_wide_graphics_size_roundtrip() -> None:
    record = Record(LINE, {"start": (0, 0, 0), "end": (1, 0, 0), "graphics_data_size": 64, "graphics_data": ["00FF"]})

    assert _roundtrip(record, R2018, wide_graphics_size=True) == record


@pytest.mark.parametrize("version", VERSIONS)
def test_unknown_tags_survive(version: int) -> None:
    tokens = encode(Record(LINE, {"start": (0, 0, 0), "end": (1, 0, 0)}), LINE, version)
    tokens.append(Token(1071, "99"))

    record = decode(tokens[1:] + [Token(0, "EOF")], LINE, version).record
    again = encode(record, LINE, version, preserve_unknown=True)

    assert again[-1] == Token(1071, "99")
    assert record.unknown_tags == [Token(1071, "99")]


def test_fields_outside_version_range_are_not_written_but_reported_when_read() -> None:
    record = Record(LINE, {"start": (0, 0, 0), "end": (1, 0, 0), "lineweight": 50, "elevation": 4.0})

    r12 = encode(record, LINE, R12)
    r2000 = encode(record, LINE, R2000)

    assert 370 not in [token.code for token in r12]
    assert 38 not in [token.code for token in r2000]

    decoded = decode(r12[1:] + [Token(370, "50"), Token(0, "EOF")], LINE, R12).record
    assert decoded["lineweight"] == -1
    assert [entry.kind for entry in decoded.diagnostics] == [INACTIVE_GROUP_CODE]


def test_default_linetype_is_omitted_then_restored() -> None:
    record = Record(LINE, {"start": (0, 0, 0), "end": (1, 0, 0), "linetype": "BYLAYER"})

    tokens = encode(record, LINE, R2000)

    assert 6 not in [token.code for token in tokens]
    assert _roundtrip(record, R2000)["linetype"] == "BYLAYER"


REQUIRED = {
    "LINE": {"start": (0, 0, 0), "end": (1, 1, 1)},
    "POINT": {"location": (5, 5, 0)},
    "CIRCLE": {"center": (0, 0, 0), "radius": 1.0},
    "ARC": {"center": (0, 0, 0), "radius": 1.0},
    "HELIX": {"axis_base_point": (0, 0, 0), "start_point": (1, 0, 0), "radius": 1.0},
    "TABLE": {"block_name": "*T1"},
    "LAYER": {"name": "0"},
    "LTYPE": {"name": "CONTINUOUS"},
    "STYLE": {"name": "Standard"},
    "APPID": {"name": "ACAD"},
}


def _minimal(schema: EntitySchema) -> Record:
    return Record(schema, {"handle": 0x99, **REQUIRED.get(schema.name, {})})


def test_every_schema_roundtrips_its_defaults() -> None:
    for schema in REGISTRY:
        record = _minimal(schema)
        for version in (R12, R2018):
            if not is_schema_active(schema, version):
                continue
            assert _roundtrip(record, version) == record, (schema.name, version)


def test_every_schema_is_written_from_its_first_version() -> None:
    for schema in REGISTRY:
        record = _minimal(schema)
        first = schema.min_version or R12
        assert _roundtrip(record, first) == record, schema.name
        if schema.min_version is not None:
            with pytest.raises(SchemaViolation, match="cannot be written"):
                encode(record, schema, R12)


def test_point_defaults_are_written_as_points() -> None:
    face = Record(FACE_3D, {"handle": 1})
    table = Record(TABLE, {"block_name": "*T1"})

    face_tokens = encode(face, FACE_3D, R2018)
    table_tokens = encode(table, TABLE, R2018)

    assert face["vtx2"] == (0.0, 0.0, 0.0)
    assert [token.code for token in face_tokens].count(10) == 1
    assert Token(13, "0.0") in face_tokens
    assert Token(33, "0.0") in face_tokens
    assert Token(11, "1.0") in table_tokens
    assert _roundtrip(table, R2018)["horizontal_direction"] == (1.0, 0.0, 0.0)
