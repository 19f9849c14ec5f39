from __future__ import annotations

from .policy import (
    COLOR_BYLAYER,
    DEFAULT_EXTRUSION,
    DEFAULT_LAYER,
    DEFAULT_LINETYPE,
    DEFAULT_LINETYPE_SCALE,
    DEFAULT_VISIBILITY,
    LINEWEIGHT_BYLAYER,
    MODELSPACE,
    R12,
    R13,
    R14,
    R2000,
    R2004,
    R2007,
)
from .schema import (
    DOUBLE,
    FLAGS,
    HANDLE,
    INT,
    POINT,
    POINT_LIST,
    REPEATED,
    STRING,
    EntitySchema,
    FieldSpec,
    SchemaRegistry,
    Section,
)

REACTORS = "{ACAD_REACTORS"
XDICTIONARY = "{ACAD_XDICTIONARY"

ENTITY_TYPES = (
    "3DFACE",
    "LINE",
    "POINT",
    "CIRCLE",
    "ARC",
    "SPLINE",
    "HELIX",
    "REGION",
    "BODY",
    "3DSOLID",
    "TABLE",
)
TABLE_TYPES = ("LAYER", "LTYPE", "STYLE", "APPID")
OBJECT_TYPES = ("DICTIONARY", "IDBUFFER", "LAYER_INDEX")

NAME_LENGTH = 255

SYMBOL_BITS = {"xref_dependent": 4, "xref_resolved": 5, "referenced": 6}
LAYER_BITS = {"frozen": 0, "frozen_new_viewports": 1, "locked": 2, **SYMBOL_BITS}
STYLE_BITS = {"shape_file": 0, "vertical_text": 2, **SYMBOL_BITS}
TEXT_GENERATION_BITS = {"backward": 1, "upside_down": 2}
SPLINE_BITS = {"closed": 0, "periodic": 1, "rational": 2, "planar": 3, "linear": 4}
FACE_EDGE_BITS = {"first_edge": 0, "second_edge": 1, "third_edge": 2, "fourth_edge": 3}


def _point(code: int, name: str, **kwargs) -> FieldSpec:
    return FieldSpec(code, name, DOUBLE, POINT, **kwargs)


def _extrusion(name: str = "extrusion") -> FieldSpec:
    return _point(210, name, default=DEFAULT_EXTRUSION, min_version=R13)


def _owner_fields() -> tuple[FieldSpec, ...]:
    return (
        FieldSpec(5, "handle", HANDLE),
        FieldSpec(330, "reactors", HANDLE, REPEATED, min_version=R14, app_group=REACTORS),
        FieldSpec(360, "xdictionary", HANDLE, min_version=R14, app_group=XDICTIONARY),
        FieldSpec(330, "owner", HANDLE, min_version=R13),
    )


def _entity_sections() -> tuple[Section, ...]:
    common = (
        FieldSpec(67, "paperspace", INT, default=MODELSPACE),
        FieldSpec(8, "layer", default=DEFAULT_LAYER, suppress_default=False, max_length=NAME_LENGTH),
        FieldSpec(6, "linetype", default=DEFAULT_LINETYPE, max_length=NAME_LENGTH),
        FieldSpec(347, "material", HANDLE, min_version=R2007),
        FieldSpec(62, "color", INT, default=COLOR_BYLAYER),
        FieldSpec(370, "lineweight", INT, min_version=R2000, default=LINEWEIGHT_BYLAYER),
        FieldSpec(48, "linetype_scale", DOUBLE, min_version=R13, default=DEFAULT_LINETYPE_SCALE),
        FieldSpec(60, "invisible", INT, min_version=R13, default=DEFAULT_VISIBILITY),
        FieldSpec(92, "graphics_data_size", INT, min_version=R2000, wide_code=160),
        FieldSpec(310, "graphics_data", STRING, REPEATED, min_version=R2000),
        FieldSpec(420, "true_color", INT, min_version=R2004),
        FieldSpec(430, "color_name", min_version=R2004),
        FieldSpec(440, "transparency", INT, min_version=R2004),
        FieldSpec(390, "plotstyle", HANDLE, min_version=R2000),
        FieldSpec(284, "shadow_mode", INT, min_version=R2007),
        FieldSpec(38, "elevation", DOUBLE, max_version=R12, default=0.0),
        FieldSpec(39, "thickness", DOUBLE, default=0.0),
    )
    return (Section(None, _owner_fields()), Section("AcDbEntity", common))


def _entity(name: str, *sections: Section, min_version: int | None = None) -> EntitySchema:
    return EntitySchema(name, _entity_sections() + sections, min_version=min_version)


def _spline_section() -> Section:
    return Section(
        "AcDbSpline",
        (
            _extrusion("normal_vector"),
            FieldSpec(70, "flags", FLAGS, default=0, suppress_default=False, bits=SPLINE_BITS),
            FieldSpec(71, "degree", INT, default=3, suppress_default=False),
            FieldSpec(72, "knot_count", INT, count_of="knots"),
            FieldSpec(73, "control_point_count", INT, count_of="control_points"),
            FieldSpec(74, "fit_point_count", INT, count_of="fit_points"),
            FieldSpec(42, "knot_tolerance", DOUBLE, default=1e-10),
            FieldSpec(43, "control_point_tolerance", DOUBLE, default=1e-10),
            FieldSpec(44, "fit_tolerance", DOUBLE, default=1e-10),
            _point(12, "start_tangent"),
            _point(13, "end_tangent"),
            FieldSpec(40, "knots", DOUBLE, REPEATED),
            FieldSpec(41, "weights", DOUBLE, REPEATED),
            FieldSpec(10, "control_points", DOUBLE, POINT_LIST),
            FieldSpec(11, "fit_points", DOUBLE, POINT_LIST),
        ),
    )


def _modeler_section() -> Section:
    return Section(
        "AcDbModelerGeometry",
        (
            FieldSpec(70, "version", INT, min_version=R13, default=1, suppress_default=False),
            FieldSpec(1, "acis_data", STRING, REPEATED),
            FieldSpec(3, "acis_data_continued", STRING, REPEATED),
        ),
    )


def _symbol_record(name: str, marker: str, fields: tuple[FieldSpec, ...]) -> EntitySchema:
    return EntitySchema(
        name,
        (
            Section(None, _owner_fields()),
            Section("AcDbSymbolTableRecord", ()),
            Section(marker, fields),
        ),
    )


def _record_name() -> FieldSpec:
    return FieldSpec(2, "name", required=True, max_length=NAME_LENGTH)


def _symbol_flags(bits: dict[str, int] | None = None) -> FieldSpec:
    return FieldSpec(70, "flags", FLAGS, default=0, suppress_default=False, bits=bits or SYMBOL_BITS)


FACE_3D = _entity(
    "3DFACE",
    Section(
        "AcDbFace",
        (
            _point(10, "vtx0", suppress_default=False, default=(0.0, 0.0, 0.0)),
            _point(11, "vtx1", suppress_default=False, default=(0.0, 0.0, 0.0)),
            _point(12, "vtx2", suppress_default=False, default=(0.0, 0.0, 0.0)),
            _point(13, "vtx3", suppress_default=False, default=(0.0, 0.0, 0.0)),
            FieldSpec(70, "invisible_edges", FLAGS, default=0, bits=FACE_EDGE_BITS),
        ),
    ),
)

LINE = _entity(
    "LINE",
    Section(
        "AcDbLine",
        (
            _point(10, "start", required=True),
            _point(11, "end", required=True),
            _extrusion(),
        ),
    ),
)

POINT_ENTITY = _entity(
    "POINT",
    Section(
        "AcDbPoint",
        (
            _point(10, "location", required=True),
            _extrusion(),
            FieldSpec(50, "angle", DOUBLE, default=0.0),
        ),
    ),
)

_CIRCLE_FIELDS = (
    _point(10, "center", required=True),
    FieldSpec(40, "radius", DOUBLE, required=True),
    _extrusion(),
)

CIRCLE = _entity("CIRCLE", Section("AcDbCircle", _CIRCLE_FIELDS))

ARC = _entity(
    "ARC",
    Section("AcDbCircle", _CIRCLE_FIELDS),
    Section(
        "AcDbArc",
        (
            FieldSpec(50, "start_angle", DOUBLE, default=0.0, suppress_default=False),
            FieldSpec(51, "end_angle", DOUBLE, default=360.0, suppress_default=False),
        ),
    ),
)

SPLINE = _entity("SPLINE", _spline_section(), min_version=R13)

HELIX = _entity(
    "HELIX",
    _spline_section(),
    Section(
        "AcDbHelix",
        (
            FieldSpec(90, "major_release", INT, default=29, suppress_default=False),
            FieldSpec(91, "maintenance_release", INT, default=63, suppress_default=False),
            _point(10, "axis_base_point", required=True),
            _point(11, "start_point", required=True),
            _point(12, "axis_vector", default=(0.0, 0.0, 1.0), suppress_default=False),
            FieldSpec(40, "radius", DOUBLE, required=True),
            FieldSpec(41, "turns", DOUBLE, default=1.0, suppress_default=False),
            FieldSpec(42, "turn_height", DOUBLE, default=1.0, suppress_default=False),
            FieldSpec(290, "handedness", INT, default=1, suppress_default=False),
            FieldSpec(280, "constrain", INT, default=1, suppress_default=False),
        ),
    ),
    min_version=R2007,
)

REGION = _entity("REGION", _modeler_section(), min_version=R13)
BODY = _entity("BODY", _modeler_section(), min_version=R13)

SOLID_3D = _entity(
    "3DSOLID",
    _modeler_section(),
    Section("AcDb3dSolid", (FieldSpec(350, "history", HANDLE, min_version=R2007),), min_version=R2007),
    min_version=R13,
)

TABLE = _entity(
    "TABLE",
    Section(
        "AcDbBlockReference",
        (
            FieldSpec(2, "block_name", required=True, max_length=NAME_LENGTH),
            _point(10, "insert", default=(0.0, 0.0, 0.0), suppress_default=False),
        ),
    ),
    Section(
        "AcDbTable",
        (
            FieldSpec(280, "table_data_version", INT, default=0, suppress_default=False),
            FieldSpec(342, "table_style", HANDLE),
            FieldSpec(343, "owner_block", HANDLE),
            _point(11, "horizontal_direction", default=(1.0, 0.0, 0.0), suppress_default=False),
            FieldSpec(90, "table_value_flags", INT, default=0),
            FieldSpec(91, "row_count", INT, count_of="row_heights"),
            FieldSpec(92, "column_count", INT, count_of="column_widths"),
            FieldSpec(93, "override_flags", INT, default=0),
            FieldSpec(94, "border_color_overrides", INT, default=0),
            FieldSpec(95, "border_lineweight_overrides", INT, default=0),
            FieldSpec(96, "border_visibility_overrides", INT, default=0),
            FieldSpec(141, "row_heights", DOUBLE, REPEATED),
            FieldSpec(142, "column_widths", DOUBLE, REPEATED),
        ),
    ),
    min_version=R13,
)

LAYER = _symbol_record(
    "LAYER",
    "AcDbLayerTableRecord",
    (
        _record_name(),
        _symbol_flags(LAYER_BITS),
        FieldSpec(62, "color", INT, default=7, suppress_default=False),
        FieldSpec(6, "linetype", default="CONTINUOUS", suppress_default=False, max_length=NAME_LENGTH),
        FieldSpec(290, "plot", INT, min_version=R2000, default=1),
        FieldSpec(370, "lineweight", INT, min_version=R2000, default=-3, suppress_default=False),
        FieldSpec(390, "plotstyle", HANDLE, min_version=R2000),
        FieldSpec(347, "material", HANDLE, min_version=R2007),
    ),
)

LTYPE = _symbol_record(
    "LTYPE",
    "AcDbLinetypeTableRecord",
    (
        _record_name(),
        _symbol_flags(),
        FieldSpec(3, "description", default="", suppress_default=False),
        FieldSpec(72, "alignment", INT, default=65, suppress_default=False),
        FieldSpec(73, "dash_count", INT, count_of="dashes"),
        FieldSpec(40, "pattern_length", DOUBLE, default=0.0, suppress_default=False),
        FieldSpec(49, "dashes", DOUBLE, REPEATED),
    ),
)

STYLE = _symbol_record(
    "STYLE",
    "AcDbTextStyleTableRecord",
    (
        _record_name(),
        _symbol_flags(STYLE_BITS),
        FieldSpec(40, "height", DOUBLE, default=0.0, suppress_default=False),
        FieldSpec(41, "width", DOUBLE, default=1.0, suppress_default=False),
        FieldSpec(50, "oblique", DOUBLE, default=0.0, suppress_default=False),
        FieldSpec(71, "generation_flags", FLAGS, default=0, suppress_default=False, bits=TEXT_GENERATION_BITS),
        FieldSpec(42, "last_height", DOUBLE, default=2.5, suppress_default=False),
        FieldSpec(3, "font", default="txt", suppress_default=False),
        FieldSpec(4, "bigfont", default=""),
    ),
)

APPID = _symbol_record(
    "APPID",
    "AcDbRegAppTableRecord",
    (_record_name(), _symbol_flags()),
)

DICTIONARY = EntitySchema(
    "DICTIONARY",
    (
        Section(None, _owner_fields()),
        Section(
            "AcDbDictionary",
            (
                FieldSpec(280, "hard_owned", INT, min_version=R2000, default=0),
                FieldSpec(281, "cloning", INT, min_version=R2000, default=1, suppress_default=False),
                FieldSpec(3, "entry_names", STRING, REPEATED, row="entries"),
                FieldSpec(350, "entry_handles", HANDLE, REPEATED, row="entries"),
                FieldSpec(360, "owned_entry_handles", HANDLE, REPEATED, row="entries"),
            ),
        ),
    ),
    min_version=R13,
)

# The first bare 330 is the owner, every later one references an entity.
IDBUFFER = EntitySchema(
    "IDBUFFER",
    (
        Section(
            None,
            (
                FieldSpec(5, "handle", HANDLE),
                FieldSpec(330, "reactors", HANDLE, REPEATED, min_version=R14, app_group=REACTORS),
                FieldSpec(360, "xdictionary", HANDLE, min_version=R14, app_group=XDICTIONARY),
                FieldSpec(330, "owner", HANDLE, occurrences=(0, 1)),
            ),
        ),
        Section(
            "AcDbIdBuffer",
            (FieldSpec(330, "entities", HANDLE, REPEATED, occurrences=(1, None)),),
        ),
    ),
    min_version=R13,
)

# 360 inside {ACAD_XDICTIONARY is the extension dictionary, outside it the id buffers.
LAYER_INDEX = EntitySchema(
    "LAYER_INDEX",
    (
        Section(None, _owner_fields()),
        Section("AcDbIndex", (FieldSpec(40, "timestamp", DOUBLE, default=0.0, suppress_default=False),)),
        Section(
            "AcDbLayerIndex",
            (
                FieldSpec(8, "layer_names", STRING, REPEATED, row="entries"),
                FieldSpec(360, "id_buffers", HANDLE, REPEATED, row="entries"),
                FieldSpec(90, "entry_counts", INT, REPEATED, row="entries"),
            ),
        ),
    ),
    min_version=R13,
)

REGISTRY = SchemaRegistry(
    (
        FACE_3D,
        LINE,
        POINT_ENTITY,
        CIRCLE,
        ARC,
        SPLINE,
        HELIX,
        REGION,
        BODY,
        SOLID_3D,
        TABLE,
        LAYER,
        LTYPE,
        STYLE,
        APPID,
        DICTIONARY,
        IDBUFFER,
        LAYER_INDEX,
    )
).seal()


def kind_of(name: str) -> str | None:
    key = name.strip().upper()
    if key in ENTITY_TYPES:
        return "entity"
    if key in TABLE_TYPES:
        return "table"
    if key in OBJECT_TYPES:
        return "object"
    return None
