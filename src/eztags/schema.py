from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

from .errors import UnknownEntityType
from .policy import is_field_active, is_section_active, markers_active

INT = "int"
HANDLE = "handle"
DOUBLE = "double"
STRING = "string"
FLAGS = "flags"
FIELD_TYPES = (INT, HANDLE, DOUBLE, STRING, FLAGS)

SINGLE = "single"
REPEATED = "repeated"
POINT = "point"
POINT_LIST = "point-list"
CARDINALITIES = (SINGLE, REPEATED, POINT, POINT_LIST)

RESERVED_CODES = {0, 100, 102, 999}


@dataclass(frozen=True)
class FieldSpec:
    code: int
    name: str
    type: str = STRING
    cardinality: str = SINGLE
    min_version: int | None = None
    max_version: int | None = None
    default: Any = None
    required: bool = False
    suppress_default: bool = True
    occurrences: tuple[int, int | None] | None = None
    app_group: str | None = None
    wide_code: int | None = None
    count_of: str | None = None
    dimensions: int = 3
    bits: Mapping[str, int] = field(default_factory=dict, hash=False)
    max_length: int | None = None
    row: str | None = None

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f"{self.name}: unknown field type {self.type!r}")
        if self.cardinality not in CARDINALITIES:
            raise ValueError(f"{self.name}: unknown cardinality {self.cardinality!r}")
        if self.code in RESERVED_CODES:
            raise ValueError(f"{self.name}: group code {self.code} is reserved")
        if self.is_point:
            if self.type != DOUBLE:
                raise ValueError(f"{self.name}: point fields must be doubles")
            if self.dimensions not in (2, 3):
                raise ValueError(f"{self.name}: points have 2 or 3 dimensions")
            if not (10 <= self.code <= 18 or self.code == 210):
                raise ValueError(f"{self.name}: point X code must be in 10..18 or 210, got {self.code}")
        if self.count_of is not None and (self.cardinality != SINGLE or self.type != INT):
            raise ValueError(f"{self.name}: count fields must be single ints")
        if self.bits and self.type != FLAGS:
            raise ValueError(f"{self.name}: named bits need a flags field")
        if self.row is not None and not self.is_list:
            raise ValueError(f"{self.name}: only repeated fields can share a row")

    @property
    def is_point(self) -> bool:
        return self.cardinality in {POINT, POINT_LIST}

    @property
    def is_list(self) -> bool:
        return self.cardinality in {REPEATED, POINT_LIST}

    @property
    def component_codes(self) -> tuple[int, ...]:
        if not self.is_point:
            return (self.code,)
        return tuple(self.code + 10 * axis for axis in range(self.dimensions))

    @property
    def codes(self) -> tuple[int, ...]:
        codes = self.component_codes
        if self.wide_code is not None:
            codes = codes + (self.wide_code,)
        return codes

    def claims_occurrence(self, index: int) -> bool:
        if self.occurrences is None:
            return True
        start, stop = self.occurrences
        if index < start:
            return False
        return stop is None or index < stop


@dataclass(frozen=True)
class Section:
    marker: str | None
    fields: tuple[FieldSpec, ...]
    min_version: int | None = None
    max_version: int | None = None


@dataclass(frozen=True)
class EntitySchema:
    name: str
    sections: tuple[Section, ...]
    handle_field: str | None = "handle"
    min_version: int | None = None

    def __post_init__(self) -> None:
        names: set[str] = set()
        for spec in self.fields:
            if spec.name in names:
                raise ValueError(f"{self.name}: duplicate field name {spec.name!r}")
            names.add(spec.name)
        for spec in self.fields:
            if spec.count_of is not None and spec.count_of not in names:
                raise ValueError(f"{self.name}: {spec.name} counts unknown field {spec.count_of!r}")
        object.__setattr__(self, "_by_name", {spec.name: spec for spec in self.fields})
        by_code: dict[int, list[tuple[int, FieldSpec]]] = {}
        for section_index, section in enumerate(self.sections):
            for spec in section.fields:
                for code in spec.codes:
                    by_code.setdefault(code, []).append((section_index, spec))
        object.__setattr__(self, "_by_code", {code: tuple(rows) for code, rows in by_code.items()})

    @property
    def fields(self) -> tuple[FieldSpec, ...]:
        return tuple(spec for section in self.sections for spec in section.fields)

    @property
    def markers(self) -> tuple[str, ...]:
        return tuple(section.marker for section in self.sections if section.marker is not None)

    def active_markers(self, version: int) -> tuple[str, ...]:
        if not markers_active(version):
            return ()
        return tuple(
            section.marker
            for section in self.sections
            if section.marker is not None and is_section_active(section, version)
        )

    def field(self, name: str) -> FieldSpec:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"{self.name} has no field {name!r}") from None

    def has_field(self, name: str) -> bool:
        return name in self._by_name

    def candidates(self, code: int) -> tuple[tuple[int, FieldSpec], ...]:
        return self._by_code.get(code, ())

    def active_candidates(self, code: int, version: int) -> tuple[tuple[int, FieldSpec], ...]:
        return tuple(
            (section_index, spec)
            for section_index, spec in self.candidates(code)
            if is_field_active(spec, version) and is_section_active(self.sections[section_index], version)
        )

    def section_index(self, marker: str) -> int | None:
        for index, section in enumerate(self.sections):
            if section.marker == marker:
                return index
        return None

    def stored_fields(self) -> Iterator[FieldSpec]:
        for spec in self.fields:
            if spec.count_of is None:
                yield spec


class SchemaRegistry:
    def __init__(self, schemas: Iterable[EntitySchema] = ()) -> None:
        self._schemas: dict[str, EntitySchema] = {}
        self._sealed = False
        for schema in schemas:
            self.register(schema)

    def register(self, schema: EntitySchema) -> EntitySchema:
        if self._sealed:
            raise RuntimeError(f"schema registry is sealed; cannot register {schema.name}")
        key = schema.name.upper()
        if key in self._schemas:
            raise ValueError(f"schema already registered: {schema.name}")
        self._schemas[key] = schema
        return schema

    def seal(self) -> "SchemaRegistry":
        self._sealed = True
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    def lookup(self, name: str) -> EntitySchema:
        try:
            return self._schemas[name.strip().upper()]
        except KeyError:
            raise UnknownEntityType(f"no schema registered for entity type {name!r}") from None

    def get(self, name: str) -> EntitySchema | None:
        return self._schemas.get(name.strip().upper())

    def names(self) -> tuple[str, ...]:
        return tuple(schema.name for schema in self._schemas.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().upper() in self._schemas

    def __iter__(self) -> Iterator[EntitySchema]:
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)


def lookup(name: str) -> EntitySchema:
    from .catalog import REGISTRY

    return REGISTRY.lookup(name)
