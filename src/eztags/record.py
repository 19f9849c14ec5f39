from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator, NamedTuple

from .errors import Diagnostic
from .policy import default_for
from .tokens import Token

if TYPE_CHECKING:
    from .chain import Chain
    from .schema import EntitySchema, FieldSpec


class Point(NamedTuple):
    x: float
    y: float
    z: float = 0.0


class Record:
    """One decoded entity, table record or object.

    Values are keyed by field name. A record starts out holding the schema
    defaults, is filled in field by field while decoding and is frozen once
    its terminating ``0`` tag has been seen.
    """

    def __init__(self, schema: "EntitySchema", values: dict[str, Any] | None = None) -> None:
        self.schema = schema
        self.values: dict[str, Any] = {
            spec.name: _initial_value(spec) for spec in schema.stored_fields()
        }
        self.diagnostics: list[Diagnostic] = []
        self.unknown_tags: list[Token] = []
        self.chain: "Chain | None" = None
        self._frozen = False
        self._released = False
        if values:
            for name, value in values.items():
                self.set(name, value)

    @property
    def dxftype(self) -> str:
        return self.schema.name

    @property
    def handle(self) -> int | None:
        if self.schema.handle_field is None:
            return None
        return self.values.get(self.schema.handle_field)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def released(self) -> bool:
        return self._released

    @property
    def dxf(self) -> dict[str, Any]:
        return self.values

    def freeze(self) -> "Record":
        self._frozen = True
        return self

    def copy(self) -> "Record":
        clone = Record(self.schema)
        for name, value in self.values.items():
            clone.values[name] = list(value) if isinstance(value, list) else value
        clone.unknown_tags = list(self.unknown_tags)
        return clone

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._check_mutable()
        spec = self.schema.field(name)
        if spec.count_of is not None:
            raise KeyError(f"{self.dxftype}.{name} is derived from {spec.count_of} and cannot be set")
        if spec.is_point:
            if spec.is_list:
                value = [_as_point(item) for item in value]
            elif value is not None:
                value = _as_point(value)
        elif spec.is_list:
            value = list(value)
        self.values[name] = value

    def append(self, name: str, value: Any) -> None:
        self._check_mutable()
        spec = self.schema.field(name)
        if not spec.is_list:
            raise TypeError(f"{self.dxftype}.{name} is not a repeated field")
        if spec.is_point:
            value = _as_point(value)
        self.values[name].append(value)

    def has_bit(self, name: str, bit: int | str) -> bool:
        spec = self.schema.field(name)
        if isinstance(bit, str):
            try:
                bit = spec.bits[bit]
            except KeyError:
                raise KeyError(f"{self.dxftype}.{name} has no bit named {bit!r}") from None
        value = self.values.get(name) or 0
        return bool(int(value) & (1 << bit))

    def set_bit(self, name: str, bit: int | str, enabled: bool = True) -> None:
        spec = self.schema.field(name)
        if isinstance(bit, str):
            bit = spec.bits[bit]
        value = int(self.values.get(name) or 0)
        if enabled:
            value |= 1 << bit
        else:
            value &= ~(1 << bit)
        self.set(name, value)

    def points(self) -> list[Point]:
        out: list[Point] = []
        for spec in self.schema.stored_fields():
            if not spec.is_point:
                continue
            value = self.values.get(spec.name)
            if value is None:
                continue
            if spec.is_list:
                out.extend(value)
            else:
                out.append(value)
        return out

    def release(self) -> tuple[int, int]:
        if self._released:
            return (0, 0)
        points = 0
        buffers = 0
        for spec in self.schema.stored_fields():
            value = self.values.get(spec.name)
            if value is None:
                continue
            if spec.is_point:
                points += len(value) if spec.is_list else 1
            if spec.is_list and value:
                buffers += 1
        self.values.clear()
        self.unknown_tags.clear()
        self.chain = None
        self._released = True
        self._frozen = True
        return (points, buffers)

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.dxftype == other.dxftype and self.values == other.values

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        handle = self.handle
        label = f"#{handle:X}" if isinstance(handle, int) and handle >= 0 else "#-"
        return f"<Record {self.dxftype} {label}>"

    def _check_mutable(self) -> None:
        if self._released:
            raise RuntimeError(f"{self!r} has been released")
        if self._frozen:
            raise RuntimeError(f"{self!r} is frozen")


def _as_point(value: Any) -> Point:
    if isinstance(value, Point):
        return value
    items = tuple(float(item) for item in value)
    if len(items) == 2:
        return Point(items[0], items[1], 0.0)
    if len(items) != 3:
        raise ValueError(f"expected a 2D or 3D point, got {value!r}")
    return Point(*items)


def _initial_value(spec: "FieldSpec") -> Any:
    value = default_for(spec)
    if spec.is_point and value is not None:
        if spec.is_list:
            return [_as_point(item) for item in value]
        return _as_point(value)
    return value
