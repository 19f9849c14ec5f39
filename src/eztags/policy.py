from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .schema import EntitySchema, FieldSpec, Section

R12 = 1009
R13 = 1012
R14 = 1014
R2000 = 1015
R2004 = 1018
R2007 = 1021
R2010 = 1024
R2013 = 1027
R2018 = 1032

RELEASES: dict[str, int] = {
    "R10": 1006,
    "R11": 1009,
    "R12": R12,
    "R13": R13,
    "R14": R14,
    "R2000": R2000,
    "R2000I": 1016,
    "R2002": 1017,
    "R2004": R2004,
    "R2005": 1019,
    "R2006": 1020,
    "R2007": R2007,
    "R2008": 1022,
    "R2009": 1023,
    "R2010": R2010,
    "R2011": 1025,
    "R2012": 1026,
    "R2013": R2013,
    "R2018": R2018,
}
SUPPORTED_VERSIONS = (R12, R13, R14, R2000, R2004, R2007, R2010, R2013, R2018)
OLDEST_VERSION = R12
NEWEST_VERSION = R2018

SUBCLASS_MARKER_VERSION = R13
APP_GROUP_VERSION = R14

DEFAULT_LAYER = "0"
DEFAULT_LINETYPE = "BYLAYER"
DEFAULT_LINETYPE_SCALE = 1.0
DEFAULT_TEXTSTYLE = "STANDARD"
DEFAULT_VISIBILITY = 0
COLOR_BYLAYER = 256
COLOR_BYBLOCK = 0
LINEWEIGHT_BYLAYER = -1
MODELSPACE = 0
PAPERSPACE = 1
DEFAULT_EXTRUSION = (0.0, 0.0, 1.0)

_AC_PATTERN = re.compile(r"^AC(\d{4})$")


def parse_version(value: str | int) -> int:
    if isinstance(value, int):
        number = value
    else:
        text = str(value).strip().upper()
        match = _AC_PATTERN.match(text)
        if match is not None:
            number = int(match.group(1))
        elif text in RELEASES:
            number = RELEASES[text]
        elif f"R{text}" in RELEASES:
            number = RELEASES[f"R{text}"]
        elif text.isdigit():
            number = int(text)
        else:
            raise ValueError(f"unsupported DXF version: {value}")
    if number < 1000 or number > 9999:
        raise ValueError(f"unsupported DXF version: {value}")
    return number


def version_name(version: int) -> str:
    return f"AC{version:04d}"


def release_name(version: int) -> str:
    for name, number in RELEASES.items():
        if number == version and name not in {"R11", "R2000I"}:
            return name
    return version_name(version)


def markers_active(version: int) -> bool:
    return version >= SUBCLASS_MARKER_VERSION


def app_groups_active(version: int) -> bool:
    return version >= APP_GROUP_VERSION


def in_range(version: int, min_version: int | None, max_version: int | None) -> bool:
    if min_version is not None and version < min_version:
        return False
    if max_version is not None and version > max_version:
        return False
    return True


def is_field_active(field: "FieldSpec", version: int) -> bool:
    return in_range(version, field.min_version, field.max_version)


def is_section_active(section: "Section", version: int) -> bool:
    return in_range(version, section.min_version, section.max_version)


def is_schema_active(schema: "EntitySchema", version: int) -> bool:
    return in_range(version, schema.min_version, None)


def default_for(field: "FieldSpec") -> Any:
    if field.cardinality in {"repeated", "point-list"}:
        return list(field.default or ())
    return field.default


def is_default(field: "FieldSpec", value: Any) -> bool:
    default = field.default
    if default is None:
        return value is None
    if field.type == "double" and isinstance(value, (int, float)):
        return float(value) == float(default)
    return value == default
