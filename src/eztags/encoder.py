from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .assembler import point_list_tokens, point_tokens
from .errors import ResourceExhausted, SchemaViolation
from .policy import (
    app_groups_active,
    is_default,
    is_field_active,
    is_schema_active,
    is_section_active,
    markers_active,
    parse_version,
    release_name,
)
from .record import Record
from .schema import DOUBLE, HANDLE, STRING, EntitySchema, FieldSpec
from .tokens import APP_GROUP_CODE, STRUCTURE_CODE, SUBCLASS_CODE, Token, WriterProfile, resolve_profile

logger = logging.getLogger(__name__)


@dataclass
class ChainEncoding:
    tokens: list[Token] = field(default_factory=list)
    written: int = 0
    skipped: list[tuple[Record, SchemaViolation]] = field(default_factory=list)


class Encoder:
    """Turns records back into tag streams for one target version.

    Whether the graphics data size goes out under group code 92 or 160 is a
    property of the target platform, so it is fixed when the encoder is
    built rather than decided per record.
    """

    def __init__(
        self,
        version: int | str,
        *,
        profile: str | WriterProfile | None = None,
        wide_graphics_size: bool | None = None,
        preserve_unknown: bool = False,
    ) -> None:
        self.version = parse_version(version)
        self.profile = resolve_profile(profile)
        if wide_graphics_size is None:
            wide_graphics_size = self.profile.wide_graphics_size
        self.wide_graphics_size = bool(wide_graphics_size)
        self.preserve_unknown = preserve_unknown

    def encode(self, record: Record) -> list[Token]:
        try:
            return self._encode(record)
        except MemoryError as exc:
            raise ResourceExhausted(f"out of memory while encoding {record.dxftype}") from exc

    def encode_chain(self, records: Iterable[Record], *, strict: bool = False) -> ChainEncoding:
        result = ChainEncoding()
        for record in records:
            try:
                tokens = self.encode(record)
            except SchemaViolation as exc:
                if strict:
                    raise
                logger.warning("skipping %r: %s", record, exc)
                result.skipped.append((record, exc))
                continue
            result.tokens.extend(tokens)
            result.written += 1
        return result

    def code_for(self, spec: FieldSpec) -> int:
        if self.wide_graphics_size and spec.wide_code is not None:
            return spec.wide_code
        return spec.code

    def format_value(self, spec: FieldSpec, value: Any, *, dxftype: str = "") -> str:
        if spec.type == STRING:
            text = str(value)
            if "\n" in text or "\r" in text:
                raise SchemaViolation(
                    f"{dxftype}.{spec.name} contains a line break",
                    dxftype=dxftype,
                    field=spec.name,
                )
            return text
        try:
            if spec.type == DOUBLE:
                return self.profile.format_double(value)
            if spec.type == HANDLE:
                return self.profile.format_handle(value)
            return str(int(value))
        except (TypeError, ValueError) as exc:
            raise SchemaViolation(
                f"{dxftype}.{spec.name} holds {value!r}, which is not a valid {spec.type}",
                dxftype=dxftype,
                field=spec.name,
            ) from exc

    def _encode(self, record: Record) -> list[Token]:
        schema = record.schema
        if record.released:
            raise SchemaViolation(f"{record!r} has been released", dxftype=schema.name)
        version = self.version
        if not is_schema_active(schema, version):
            raise SchemaViolation(
                f"{schema.name} cannot be written to {release_name(version)} "
                f"(requires {release_name(schema.min_version)} or later)",
                dxftype=schema.name,
            )
        tokens = [Token(STRUCTURE_CODE, schema.name)]
        open_group: str | None = None
        for section in schema.sections:
            if not is_section_active(section, version):
                continue
            if section.marker is not None and markers_active(version):
                if open_group is not None:
                    tokens.append(Token(APP_GROUP_CODE, "}"))
                    open_group = None
                tokens.append(Token(SUBCLASS_CODE, section.marker))
            active = [spec for spec in section.fields if is_field_active(spec, version)]
            written: set[str] = set()
            for spec in active:
                if spec.name in written:
                    continue
                if spec.row is not None:
                    row = [other for other in active if other.row == spec.row]
                    written.update(other.name for other in row)
                    field_tokens = self._row_tokens(schema, record, row)
                else:
                    field_tokens = self._field_tokens(schema, record, spec)
                if not field_tokens:
                    continue
                group = spec.app_group if app_groups_active(version) else None
                if group != open_group:
                    if open_group is not None:
                        tokens.append(Token(APP_GROUP_CODE, "}"))
                    if group is not None:
                        tokens.append(Token(APP_GROUP_CODE, group))
                    open_group = group
                tokens.extend(field_tokens)
        if open_group is not None:
            tokens.append(Token(APP_GROUP_CODE, "}"))
        if self.preserve_unknown:
            tokens.extend(record.unknown_tags)
        return tokens

    def _field_tokens(self, schema: EntitySchema, record: Record, spec: FieldSpec) -> list[Token]:
        values = record.values
        if spec.count_of is not None:
            count = len(values.get(spec.count_of) or ())
            return [Token(self.code_for(spec), str(count))]

        value = values.get(spec.name)
        if spec.is_list:
            items = list(value or ())
            if not items:
                self._check_required(schema, spec)
                return []
            if spec.is_point:
                return point_list_tokens(spec, items, self.profile.format_double)
            code = self.code_for(spec)
            return [Token(code, self.format_value(spec, item, dxftype=schema.name)) for item in items]

        if spec.type == STRING and value == "" and spec.default:
            logger.warning(
                "%s %s has an empty %s; writing default %r",
                schema.name,
                _handle_label(record),
                spec.name,
                spec.default,
            )
            value = spec.default
        if value is None or (spec.type == HANDLE and isinstance(value, int) and value < 0):
            self._check_required(schema, spec)
            return []
        if spec.suppress_default and not spec.required and is_default(spec, value):
            return []
        if spec.is_point:
            return point_tokens(spec, value, self.profile.format_double)
        return [Token(self.code_for(spec), self.format_value(spec, value, dxftype=schema.name))]

    def _row_tokens(self, schema: EntitySchema, record: Record, specs: list[FieldSpec]) -> list[Token]:
        columns: list[list[list[Token]]] = []
        for spec in specs:
            items = list(record.values.get(spec.name) or ())
            if not items:
                self._check_required(schema, spec)
            if spec.is_point:
                fmt = self.profile.format_double
                columns.append([point_tokens(spec, item, fmt) for item in items])
            else:
                code = self.code_for(spec)
                columns.append(
                    [[Token(code, self.format_value(spec, item, dxftype=schema.name))] for item in items]
                )
        tokens: list[Token] = []
        for index in range(max((len(column) for column in columns), default=0)):
            for column in columns:
                if index < len(column):
                    tokens.extend(column[index])
        return tokens

    def _check_required(self, schema: EntitySchema, spec: FieldSpec) -> None:
        if spec.required:
            raise SchemaViolation(
                f"{schema.name} record is missing required field {spec.name} (group code {spec.code})",
                dxftype=schema.name,
                field=spec.name,
            )


def encode(
    record: Record,
    schema: EntitySchema | None,
    version: int | str,
    *,
    profile: str | WriterProfile | None = None,
    wide_graphics_size: bool | None = None,
    preserve_unknown: bool = False,
) -> list[Token]:
    if schema is not None and schema.name != record.dxftype:
        raise SchemaViolation(
            f"cannot encode a {record.dxftype} record with the {schema.name} schema",
            dxftype=record.dxftype,
        )
    encoder = Encoder(
        version,
        profile=profile,
        wide_graphics_size=wide_graphics_size,
        preserve_unknown=preserve_unknown,
    )
    return encoder.encode(record)


def _handle_label(record: Record) -> str:
    handle = record.handle
    if isinstance(handle, int) and handle >= 0:
        return f"{handle:X}"
    return "(no handle)"
