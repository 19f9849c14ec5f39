from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

from .assembler import PointAssembler, describe_incomplete
from .chain import Chain
from .errors import (
    COMMENT,
    COUNT_MISMATCH,
    INACTIVE_GROUP_CODE,
    INVALID_VALUE,
    STRING_TOO_LONG,
    SUBCLASS_MISMATCH,
    UNKNOWN_GROUP_CODE,
    Diagnostic,
    Diagnostics,
    DiagnosticSink,
    ResourceExhausted,
    UnexpectedEof,
)
from .policy import markers_active, parse_version, release_name
from .record import Point, Record
from .schema import DOUBLE, FLAGS, HANDLE, INT, STRING, EntitySchema, FieldSpec
from .tokens import APP_GROUP_CODE, COMMENT_CODE, STRUCTURE_CODE, SUBCLASS_CODE, Token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodeResult:
    record: Record
    terminator: Token | None


@dataclass(frozen=True)
class RecordSlice:
    tokens: tuple[Token, ...]
    first_line: int | None = None

    @property
    def dxftype(self) -> str | None:
        if not self.tokens or self.tokens[0].code != STRUCTURE_CODE:
            return None
        return self.tokens[0].value


def parse_value(spec: FieldSpec, raw: str) -> Any:
    if spec.type in {INT, FLAGS}:
        return int(raw)
    if spec.type == HANDLE:
        if raw == "":
            return None
        return int(raw, 16)
    if spec.type == DOUBLE:
        return float(raw)
    return raw


def decode(
    tokens: Iterable[Token],
    schema: EntitySchema,
    version: int | str,
    *,
    sink: DiagnosticSink | None = None,
    require_terminator: bool = True,
    first_line: int | None = None,
) -> DecodeResult:
    """Decode the body of one record.

    ``tokens`` must be positioned just after the record's ``0``/type tag.
    Decoding stops at the next ``0`` tag, which is handed back unconsumed as
    ``DecodeResult.terminator``. Running out of tokens before that raises
    ``UnexpectedEof`` unless ``require_terminator`` is false, which is how
    pre-split record slices are decoded.
    """
    state = _RecordDecoder(
        schema,
        parse_version(version),
        sink if sink is not None else Diagnostics(),
        _line_source(tokens, first_line),
    )
    try:
        return state.run(tokens, require_terminator=require_terminator)
    except MemoryError as exc:
        raise ResourceExhausted(f"out of memory while decoding {schema.name}") from exc


def decode_slice(
    piece: RecordSlice,
    schema: EntitySchema,
    version: int | str,
    *,
    sink: DiagnosticSink | None = None,
) -> Record:
    if piece.dxftype is None or piece.dxftype.upper() != schema.name.upper():
        raise ValueError(f"record slice holds {piece.dxftype!r}, expected {schema.name}")
    first_line = piece.first_line + 2 if piece.first_line is not None else None
    result = decode(
        piece.tokens[1:],
        schema,
        version,
        sink=sink,
        require_terminator=False,
        first_line=first_line,
    )
    return result.record


def split_records(tokens: Iterable[Token]) -> list[RecordSlice]:
    numbered = hasattr(tokens, "line_number")
    slices: list[RecordSlice] = []
    current: list[Token] = []
    first_line: int | None = None
    skipped = 0
    for token in tokens:
        line = getattr(tokens, "line_number", None)
        if token.code == STRUCTURE_CODE:
            if current:
                slices.append(RecordSlice(tuple(current), first_line))
            current = [token]
            first_line = line - 1 if line is not None else None
            continue
        if not current:
            skipped += 1
            continue
        current.append(token)
    if current:
        slices.append(RecordSlice(tuple(current), first_line))
    if skipped:
        logger.warning("skipped %d tokens before the first record tag", skipped)
    if not numbered:
        return _number_slices(slices)
    return slices


def decode_slices(
    slices: Sequence[RecordSlice],
    schema: EntitySchema,
    version: int | str,
    *,
    max_workers: int | None = None,
    chain: Chain | None = None,
    sink: DiagnosticSink | None = None,
) -> Chain:
    target = chain if chain is not None else Chain(schema)
    version_number = parse_version(version)

    def _decode_one(piece: RecordSlice) -> Record:
        return decode_slice(piece, schema, version_number, sink=sink)

    if max_workers == 1 or len(slices) <= 1:
        records = [_decode_one(piece) for piece in slices]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            records = list(executor.map(_decode_one, slices))
    target.extend(records)
    return target


def _number_slices(slices: list[RecordSlice]) -> list[RecordSlice]:
    out: list[RecordSlice] = []
    line = 1
    for piece in slices:
        out.append(RecordSlice(piece.tokens, line))
        line += 2 * len(piece.tokens)
    return out


def _line_source(tokens: Iterable[Token], first_line: int | None) -> Callable[[int], int | None]:
    if hasattr(tokens, "line_number"):
        return lambda _index: tokens.line_number  # type: ignore[attr-defined]
    if first_line is None:
        return lambda _index: None
    return lambda index: first_line + 2 * index + 1


def _narrow(
    pool: list[tuple[int, FieldSpec]],
    keep: Callable[[int, FieldSpec], bool],
) -> list[tuple[int, FieldSpec]]:
    narrowed = [(index, spec) for index, spec in pool if keep(index, spec)]
    return narrowed or pool


class _RecordDecoder:
    def __init__(
        self,
        schema: EntitySchema,
        version: int,
        sink: DiagnosticSink,
        line_of: Callable[[int], int | None],
    ) -> None:
        self.schema = schema
        self.version = version
        self.sink = sink
        self.line_of = line_of
        self.record = Record(schema)
        self.assembler = PointAssembler()
        self.section = 0
        self.app_group: str | None = None
        self.occurrences: Counter[tuple[int, str | None]] = Counter()
        self.declared_counts: dict[str, tuple[int, int | None]] = {}
        self.expected_markers = schema.active_markers(version)
        self.last_line: int | None = None

    def run(self, tokens: Iterable[Token], *, require_terminator: bool) -> DecodeResult:
        terminator: Token | None = None
        line: int | None = None
        for index, token in enumerate(tokens):
            line = self.line_of(index)
            self.last_line = line
            if token.code == STRUCTURE_CODE:
                terminator = token
                break
            self._consume(token, line)
        if terminator is None and require_terminator:
            raise UnexpectedEof(
                f"stream ended inside a {self.schema.name} record",
                line_number=line,
            )
        self._finish()
        return DecodeResult(self.record.freeze(), terminator)

    def _consume(self, token: Token, line: int | None) -> None:
        code, raw = token
        if code == COMMENT_CODE:
            self._report(COMMENT, f"comment: {raw}", line, code, info=True)
            return
        if code == APP_GROUP_CODE:
            self._app_group(raw, line)
            return
        if code == SUBCLASS_CODE and markers_active(self.version):
            self._marker(raw, line)
            return

        candidates = self.schema.active_candidates(code, self.version)
        if not candidates:
            if self.schema.candidates(code):
                self._report(
                    INACTIVE_GROUP_CODE,
                    f"group code {code} is not valid for {self.schema.name} in {release_name(self.version)}",
                    line,
                    code,
                )
            else:
                self._report(
                    UNKNOWN_GROUP_CODE,
                    f"unknown group code {code} in {self.schema.name}",
                    line,
                    code,
                )
            self.record.unknown_tags.append(token)
            return

        # Group-scoped fields are only reachable from inside their group.
        candidates = tuple(
            (index, spec)
            for index, spec in candidates
            if spec.app_group is None or spec.app_group == self.app_group
        )
        if not candidates:
            self._report(
                UNKNOWN_GROUP_CODE,
                f"group code {code} in {self.schema.name} is only valid inside an application group",
                line,
                code,
            )
            self.record.unknown_tags.append(token)
            return

        spec = self._select(code, candidates)
        self.occurrences[(code, self.app_group)] += 1
        try:
            value = parse_value(spec, raw)
        except ValueError:
            self._report(
                INVALID_VALUE,
                f"cannot parse {raw!r} as {spec.type} for {self.schema.name}.{spec.name}",
                line,
                code,
            )
            self.record.unknown_tags.append(token)
            return
        self._assign(spec, code, value, line)

    def _select(self, code: int, candidates: tuple[tuple[int, FieldSpec], ...]) -> FieldSpec:
        pool = list(candidates)
        if len(pool) > 1:
            group = self.app_group
            pool = _narrow(pool, lambda _index, spec: spec.app_group == group)
        if len(pool) > 1:
            seen = self.occurrences[(code, self.app_group)]
            pool = _narrow(pool, lambda _index, spec: spec.claims_occurrence(seen))
        if len(pool) > 1:
            pool = _narrow(pool, lambda index, _spec: index == self.section)
        return pool[0][1]

    def _assign(self, spec: FieldSpec, code: int, value: Any, line: int | None) -> None:
        values = self.record.values
        if spec.count_of is not None:
            self.declared_counts[spec.name] = (value, line)
            return
        if spec.is_point:
            for point_spec, point, incomplete in self.assembler.feed(spec, code, value, line_number=line):
                self._store_point(point_spec, point, incomplete, line)
            return
        if spec.type == STRING and spec.max_length is not None and len(value) > spec.max_length:
            self._report(
                STRING_TOO_LONG,
                f"{self.schema.name}.{spec.name} is {len(value)} characters (limit {spec.max_length})",
                line,
                code,
            )
        if spec.is_list:
            values[spec.name].append(value)
        else:
            values[spec.name] = value

    def _store_point(self, spec: FieldSpec, point: Point, incomplete: bool, line: int | None) -> None:
        if incomplete:
            kind, message = describe_incomplete(spec, point)
            self._report(kind, f"{self.schema.name}.{message}", line, spec.code, info=True)
        if spec.is_list:
            self.record.values[spec.name].append(point)
        else:
            self.record.values[spec.name] = point

    def _marker(self, raw: str, line: int | None) -> None:
        if raw not in self.expected_markers:
            expected = ", ".join(self.expected_markers) or "none"
            self._report(
                SUBCLASS_MISMATCH,
                f"unexpected subclass marker {raw!r} in {self.schema.name} (expected {expected})",
                line,
                SUBCLASS_CODE,
            )
            return
        index = self.schema.section_index(raw)
        if index is not None:
            self.section = index

    def _app_group(self, raw: str, line: int | None) -> None:
        if raw.startswith("{"):
            self.app_group = raw
        elif raw == "}":
            self.app_group = None
        else:
            self._report(
                INVALID_VALUE,
                f"malformed application group tag {raw!r} in {self.schema.name}",
                line,
                APP_GROUP_CODE,
            )

    def _finish(self) -> None:
        line = self.last_line
        for spec, point, incomplete in self.assembler.flush():
            self._store_point(spec, point, incomplete, line)
        values = self.record.values
        for name, (declared, count_line) in self.declared_counts.items():
            spec = self.schema.field(name)
            actual = len(values.get(spec.count_of) or ())
            if declared != actual:
                self._report(
                    COUNT_MISMATCH,
                    f"{self.schema.name}.{name} declares {declared} but {actual} {spec.count_of} were read",
                    count_line,
                    spec.code,
                )
        for spec in self.schema.stored_fields():
            if spec.type != STRING or spec.is_list or spec.default is None:
                continue
            if values.get(spec.name) == "":
                values[spec.name] = spec.default

    def _report(self, kind: str, message: str, line: int | None, code: int | None, *, info: bool = False) -> Diagnostic:
        emit = self.sink.info if info else self.sink.warn
        entry = emit(message, kind=kind, line_number=line, code=code)
        if entry is None:
            entry = Diagnostic(kind=kind, message=message, line_number=line, code=code)
        self.record.diagnostics.append(entry)
        return entry
