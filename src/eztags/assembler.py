from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable

from .errors import INCOMPLETE_POINT
from .record import Point
from .tokens import Token

if TYPE_CHECKING:
    from .schema import FieldSpec

AXES = ("x", "y", "z")

Formatter = Callable[[float], str]


def axis_of(spec: "FieldSpec", code: int) -> int:
    offset = code - spec.code
    if offset % 10 != 0 or not 0 <= offset // 10 < spec.dimensions:
        raise ValueError(f"group code {code} is not a component of {spec.name}")
    return offset // 10


class PointAssembler:
    """Merges X/Y/Z component tags into Point values.

    Single point fields keep one buffer each; a later component simply
    overwrites the earlier one. Point lists start a new point whenever a
    component arrives that the open buffer already holds.
    """

    def __init__(self) -> None:
        self._open: dict[str, dict[int, float]] = {}
        self._specs: dict[str, "FieldSpec"] = {}
        self._lines: dict[str, int | None] = {}
        self._done: list[tuple["FieldSpec", Point, bool]] = []

    def feed(
        self,
        spec: "FieldSpec",
        code: int,
        value: float,
        *,
        line_number: int | None = None,
    ) -> list[tuple["FieldSpec", Point, bool]]:
        axis = axis_of(spec, code)
        buffer = self._open.get(spec.name)
        if buffer is not None and spec.is_list and axis in buffer:
            self._complete(spec.name, partial=True)
            buffer = None
        if buffer is None:
            buffer = self._open[spec.name] = {}
            self._specs[spec.name] = spec
            self._lines[spec.name] = line_number
        buffer[axis] = float(value)
        if len(buffer) == spec.dimensions:
            self._complete(spec.name, partial=False)
        return self.drain()

    def flush(self) -> list[tuple["FieldSpec", Point, bool]]:
        for name in list(self._open):
            self._complete(name, partial=True)
        return self.drain()

    def drain(self) -> list[tuple["FieldSpec", Point, bool]]:
        done, self._done = self._done, []
        return done

    def pending(self) -> dict[str, int | None]:
        return {name: self._lines.get(name) for name in self._open}

    def _complete(self, name: str, *, partial: bool) -> None:
        buffer = self._open.pop(name)
        spec = self._specs.pop(name)
        self._lines.pop(name, None)
        incomplete = partial and len(buffer) < spec.dimensions
        point = Point(buffer.get(0, 0.0), buffer.get(1, 0.0), buffer.get(2, 0.0))
        self._done.append((spec, point, incomplete))


def point_tokens(spec: "FieldSpec", point: Point, fmt: Formatter) -> list[Token]:
    components = tuple(point)[: spec.dimensions]
    return [Token(code, fmt(component)) for code, component in zip(spec.component_codes, components)]


def point_list_tokens(spec: "FieldSpec", points: Iterable[Point], fmt: Formatter) -> list[Token]:
    tokens: list[Token] = []
    for point in points:
        tokens.extend(point_tokens(spec, point, fmt))
    return tokens


def describe_incomplete(spec: "FieldSpec", point: Point) -> tuple[str, str]:
    return (
        INCOMPLETE_POINT,
        f"{spec.name} was missing components; completed as ({point.x}, {point.y}, {point.z})",
    )
