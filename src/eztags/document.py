from __future__ import annotations

import fnmatch
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, TextIO

from .catalog import REGISTRY, kind_of
from .chain import Chain, ReleaseStats
from .decoder import decode
from .encoder import Encoder
from .errors import UNKNOWN_ENTITY_TYPE, Diagnostics, DiagnosticSink, IoError, SchemaViolation, UnexpectedEof
from .policy import R12, R13, parse_version, release_name, version_name
from .record import Record
from .tokens import (
    APP_GROUP_CODE,
    STRUCTURE_CODE,
    SUBCLASS_CODE,
    Token,
    TokenReader,
    TokenWriter,
    WriterProfile,
    resolve_profile,
)

logger = logging.getLogger(__name__)

DEFAULT_VERSION = R12
SECTION_ORDER = ("HEADER", "TABLES", "ENTITIES", "OBJECTS")
# Codes a pre-R13 table header cannot carry.
_MODERN_TABLE_CODES = {SUBCLASS_CODE, APP_GROUP_CODE, 330, 360}


@dataclass
class RawRecord:
    """A record of a type without a registered schema, kept token for token."""

    dxftype: str
    tokens: list[Token]
    line_number: int | None = None


@dataclass
class Table:
    name: str
    header: list[Token] = field(default_factory=list)
    records: list[Record | RawRecord] = field(default_factory=list)


@dataclass(frozen=True)
class WriteResult:
    output_path: str | None
    version: str
    total_records: int
    written_records: int
    skipped_records: int
    skipped_by_type: dict[str, int]


@dataclass
class Document:
    path: str | None
    version: int
    header: list[Token] = field(default_factory=list)
    tables: dict[str, Table] = field(default_factory=dict)
    entities: list[Record | RawRecord] = field(default_factory=list)
    objects: list[Record | RawRecord] = field(default_factory=list)
    chains: dict[str, Chain] = field(default_factory=dict)
    extra_sections: dict[str, list[Token]] = field(default_factory=dict)
    section_order: list[str] = field(default_factory=lambda: list(SECTION_ORDER))
    diagnostics: Diagnostics | DiagnosticSink = field(default_factory=Diagnostics)

    @property
    def acadver(self) -> str:
        return version_name(self.version)

    @property
    def release(self) -> str:
        return release_name(self.version)

    def chain(self, dxftype: str) -> Chain:
        schema = REGISTRY.lookup(dxftype)
        found = self.chains.get(schema.name)
        if found is None:
            found = self.chains[schema.name] = Chain(schema)
        return found

    def add(self, record: Record, *, table: str | None = None) -> Record:
        kind = kind_of(record.dxftype)
        self.chain(record.dxftype).append(record)
        if kind == "table":
            name = (table or record.dxftype).upper()
            self.tables.setdefault(name, Table(name)).records.append(record)
        elif kind == "object":
            self.objects.append(record)
        else:
            self.entities.append(record)
        return record

    def records(self) -> Iterator[Record | RawRecord]:
        for table in self.tables.values():
            yield from table.records
        yield from self.entities
        yield from self.objects

    def query(self, types: str | Iterable[str] | None = None) -> Iterator[Record]:
        selected = set(normalize_types(types))
        for item in self.records():
            if isinstance(item, Record) and item.dxftype in selected:
                yield item

    def raw_records(self) -> Iterator[RawRecord]:
        for item in self.records():
            if isinstance(item, RawRecord):
                yield item

    def counts(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for item in self.records():
            out[item.dxftype] = out.get(item.dxftype, 0) + 1
        return out

    def find(self, handle: int) -> Record | None:
        for chain in self.chains.values():
            record = chain.find(handle)
            if record is not None:
                return record
        return None

    def dumps(
        self,
        version: int | str | None = None,
        *,
        profile: str | WriterProfile | None = None,
        strict: bool = False,
        wide_graphics_size: bool | None = None,
    ) -> str:
        text, _result = self.render(version, profile=profile, strict=strict, wide_graphics_size=wide_graphics_size)
        return text

    def render(
        self,
        version: int | str | None = None,
        *,
        profile: str | WriterProfile | None = None,
        strict: bool = False,
        wide_graphics_size: bool | None = None,
    ) -> tuple[str, WriteResult]:
        buffer = io.StringIO()
        result = self._write_stream(
            buffer,
            version,
            profile=profile,
            strict=strict,
            wide_graphics_size=wide_graphics_size,
        )
        return buffer.getvalue(), result

    def write(
        self,
        path: str | Path,
        version: int | str | None = None,
        *,
        profile: str | WriterProfile | None = None,
        strict: bool = False,
        wide_graphics_size: bool | None = None,
    ) -> WriteResult:
        out_path = Path(path)
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            stream = open(out_path, "w", encoding="utf-8", errors="surrogateescape", newline="")
        except OSError as exc:
            raise IoError(f"cannot open {out_path} for writing: {exc}") from exc
        with stream:
            result = self._write_stream(
                stream,
                version,
                profile=profile,
                strict=strict,
                wide_graphics_size=wide_graphics_size,
            )
        return WriteResult(
            output_path=str(out_path),
            version=result.version,
            total_records=result.total_records,
            written_records=result.written_records,
            skipped_records=result.skipped_records,
            skipped_by_type=result.skipped_by_type,
        )

    def destroy(self) -> ReleaseStats:
        records = points = buffers = 0
        for chain in self.chains.values():
            stats = chain.destroy()
            records += stats.records
            points += stats.points
            buffers += stats.buffers
        self.chains.clear()
        self.tables.clear()
        self.entities.clear()
        self.objects.clear()
        return ReleaseStats(records=records, points=points, buffers=buffers)

    def _write_stream(
        self,
        stream: TextIO,
        version: int | str | None,
        *,
        profile: str | WriterProfile | None,
        strict: bool,
        wide_graphics_size: bool | None,
    ) -> WriteResult:
        target = self.version if version is None else parse_version(version)
        encoder = Encoder(
            target,
            profile=profile,
            wide_graphics_size=wide_graphics_size,
            preserve_unknown=target == self.version,
        )
        writer = TokenWriter(stream, resolve_profile(profile))
        emitter = _Emitter(encoder, writer, strict=strict)

        for name in self._section_plan():
            if name == "HEADER":
                emitter.section(name, self._header_tokens(target))
            elif name == "TABLES":
                emitter.begin(name)
                for table in self.tables.values():
                    emitter.table(table, _table_header(table, target))
                emitter.end()
            elif name in {"ENTITIES", "OBJECTS"}:
                items = self.entities if name == "ENTITIES" else self.objects
                if name == "OBJECTS" and target < R13:
                    if items:
                        logger.warning("dropping %d objects: %s has no OBJECTS section", len(items), release_name(target))
                    continue
                emitter.begin(name)
                emitter.items(items)
                emitter.end()
            else:
                emitter.section(name, self.extra_sections.get(name, []))
        writer.write(Token(STRUCTURE_CODE, "EOF"))

        return WriteResult(
            output_path=None,
            version=version_name(target),
            total_records=emitter.total,
            written_records=emitter.written,
            skipped_records=emitter.total - emitter.written,
            skipped_by_type=dict(sorted(emitter.skipped_by_type.items())),
        )

    def _section_plan(self) -> list[str]:
        order = list(self.section_order)
        if "HEADER" not in order:
            order.insert(0, "HEADER")
        if "ENTITIES" not in order:
            order.append("ENTITIES")
        if "TABLES" not in order and self.tables:
            anchor = "BLOCKS" if "BLOCKS" in order else "ENTITIES"
            order.insert(order.index(anchor), "TABLES")
        if "OBJECTS" not in order and self.objects:
            order.append("OBJECTS")
        return order

    def _header_tokens(self, version: int) -> list[Token]:
        tokens = list(self.header)
        value = Token(1, version_name(version))
        for index, token in enumerate(tokens):
            if token.code == 9 and token.value == "$ACADVER":
                if index + 1 < len(tokens) and tokens[index + 1].code != 9:
                    tokens[index + 1] = value
                else:
                    tokens.insert(index + 1, value)
                return tokens
        return [Token(9, "$ACADVER"), value] + tokens


class _Emitter:
    def __init__(self, encoder: Encoder, writer: TokenWriter, *, strict: bool) -> None:
        self.encoder = encoder
        self.writer = writer
        self.strict = strict
        self.total = 0
        self.written = 0
        self.skipped_by_type: dict[str, int] = {}

    def begin(self, name: str) -> None:
        self.writer.write(Token(STRUCTURE_CODE, "SECTION"))
        self.writer.write(Token(2, name))

    def end(self) -> None:
        self.writer.write(Token(STRUCTURE_CODE, "ENDSEC"))

    def section(self, name: str, tokens: list[Token]) -> None:
        self.begin(name)
        self.writer.write_all(tokens)
        self.end()

    def table(self, table: Table, header: list[Token]) -> None:
        encoded = [tokens for tokens in map(self._encode, table.records) if tokens is not None]
        self.writer.write(Token(STRUCTURE_CODE, "TABLE"))
        self.writer.write(Token(2, table.name))
        self.writer.write_all(header)
        self.writer.write(Token(70, str(len(encoded))))
        for tokens in encoded:
            self.writer.write_all(tokens)
        self.writer.write(Token(STRUCTURE_CODE, "ENDTAB"))

    def items(self, items: Iterable[Record | RawRecord]) -> None:
        for item in items:
            tokens = self._encode(item)
            if tokens is not None:
                self.writer.write_all(tokens)

    def _encode(self, item: Record | RawRecord) -> list[Token] | None:
        self.total += 1
        if isinstance(item, RawRecord):
            self.written += 1
            return item.tokens
        try:
            tokens = self.encoder.encode(item)
        except SchemaViolation as exc:
            if self.strict:
                raise
            logger.warning("skipping %r: %s", item, exc)
            self.skipped_by_type[item.dxftype] = self.skipped_by_type.get(item.dxftype, 0) + 1
            return None
        self.written += 1
        return tokens


def _table_header(table: Table, version: int) -> list[Token]:
    tokens = [token for token in table.header if token.code not in {2, 70}]
    if version >= R13:
        return tokens
    out: list[Token] = []
    in_group = False
    for token in tokens:
        if token.code == APP_GROUP_CODE:
            in_group = token.value.startswith("{")
            continue
        if in_group or token.code in _MODERN_TABLE_CODES:
            continue
        out.append(token)
    return out


def new(version: int | str = "R2000") -> Document:
    return Document(path=None, version=parse_version(version))


def read(path: str | Path, *, sink: DiagnosticSink | None = None) -> Document:
    diagnostics = sink if sink is not None else Diagnostics(str(path))
    with TokenReader.open(path) as reader:
        return _DocumentReader(reader, str(path), diagnostics).run()


def loads(text: str, *, sink: DiagnosticSink | None = None, name: str = "<string>") -> Document:
    diagnostics = sink if sink is not None else Diagnostics(name)
    return _DocumentReader(TokenReader.from_text(text, name=name), None, diagnostics).run()


class _DocumentReader:
    def __init__(self, reader: TokenReader, path: str | None, sink: DiagnosticSink) -> None:
        self.reader = reader
        self.sink = sink
        self.doc = Document(path=path, version=DEFAULT_VERSION, section_order=[], diagnostics=sink)

    def run(self) -> Document:
        token = self.reader.next_token()
        while token is not None:
            if token == (STRUCTURE_CODE, "EOF"):
                break
            if token != (STRUCTURE_CODE, "SECTION"):
                logger.warning("%s: ignoring stray tag %s/%r", self.reader.name, token.code, token.value)
                token = self.reader.next_token()
                continue
            name_token = self._require()
            if name_token.code != 2:
                raise UnexpectedEof(
                    f"{self.reader.name}: SECTION without a name",
                    line_number=self.reader.line_number,
                )
            name = name_token.value.upper()
            self.doc.section_order.append(name)
            if name == "HEADER":
                token = self._read_header()
            elif name == "TABLES":
                token = self._read_tables()
            elif name in {"ENTITIES", "OBJECTS"}:
                token = self._read_records(self.doc.entities if name == "ENTITIES" else self.doc.objects)
            else:
                token = self._read_raw_section(name)
        logger.debug(
            "%s: read %d records (%s)",
            self.reader.name,
            sum(self.doc.counts().values()),
            release_name(self.doc.version),
        )
        return self.doc

    def _require(self) -> Token:
        token = self.reader.next_token()
        if token is None:
            raise UnexpectedEof(
                f"{self.reader.name}: stream ended inside a section",
                line_number=self.reader.line_number,
            )
        return token

    def _read_header(self) -> Token | None:
        header = self.doc.header
        while True:
            token = self._require()
            if token == (STRUCTURE_CODE, "ENDSEC"):
                break
            header.append(token)
        for index, token in enumerate(header[:-1]):
            if token.code == 9 and token.value == "$ACADVER":
                self.doc.version = parse_version(header[index + 1].value)
                break
        return self.reader.next_token()

    def _read_tables(self) -> Token | None:
        token = self._require()
        while token != (STRUCTURE_CODE, "ENDSEC"):
            if token != (STRUCTURE_CODE, "TABLE"):
                logger.warning("%s: ignoring %s outside a table", self.reader.name, token.value)
                token = self._require()
                continue
            table = Table(name="")
            token = self._require()
            while token.code != STRUCTURE_CODE:
                if token.code == 2 and not table.name:
                    table.name = token.value.upper()
                table.header.append(token)
                token = self._require()
            self.doc.tables[table.name] = table
            while token != (STRUCTURE_CODE, "ENDTAB"):
                if token == (STRUCTURE_CODE, "ENDSEC"):
                    logger.warning("%s: table %s is missing ENDTAB", self.reader.name, table.name)
                    return self.reader.next_token()
                item, token = self._read_record(token)
                table.records.append(item)
            token = self._require()
        return self.reader.next_token()

    def _read_records(self, target: list[Record | RawRecord]) -> Token | None:
        token = self._require()
        while token != (STRUCTURE_CODE, "ENDSEC"):
            item, token = self._read_record(token)
            target.append(item)
        return self.reader.next_token()

    def _read_raw_section(self, name: str) -> Token | None:
        tokens = self.doc.extra_sections.setdefault(name, [])
        while True:
            token = self._require()
            if token == (STRUCTURE_CODE, "ENDSEC"):
                return self.reader.next_token()
            tokens.append(token)

    def _read_record(self, head: Token) -> tuple[Record | RawRecord, Token]:
        line = self.reader.line_number - 1
        schema = REGISTRY.get(head.value)
        if schema is None:
            self.sink.warn(
                f"no schema for {head.value}; keeping it as raw tags",
                kind=UNKNOWN_ENTITY_TYPE,
                line_number=line,
                code=STRUCTURE_CODE,
            )
            tokens = [head]
            token = self._require()
            while token.code != STRUCTURE_CODE:
                tokens.append(token)
                token = self._require()
            return RawRecord(head.value, tokens, line), token
        result = decode(self.reader, schema, self.doc.version, sink=self.sink)
        self.doc.chain(schema.name).append(result.record)
        terminator = result.terminator
        if terminator is None:
            raise UnexpectedEof(f"stream ended inside a {schema.name} record", line_number=self.reader.line_number)
        return result.record, terminator


def normalize_types(types: str | Iterable[str] | None) -> list[str]:
    known = list(REGISTRY.names())
    if types is None:
        return known
    if isinstance(types, str):
        tokens = re.split(r"[,\s]+", types.strip())
    else:
        tokens = list(types)

    normalized = [token.strip().upper() for token in tokens if token and token.strip()]
    if not normalized or any(token in {"*", "ALL"} for token in normalized):
        return known

    selected: list[str] = []
    seen = set()
    for token in normalized:
        if any(ch in token for ch in "*?[]"):
            matches = [name for name in known if fnmatch.fnmatchcase(name, token)]
        else:
            matches = [token] if token in REGISTRY else []
        for name in matches:
            if name not in seen:
                seen.add(name)
                selected.append(name)
    return selected
