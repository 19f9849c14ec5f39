from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

UNKNOWN_GROUP_CODE = "unknown-group-code"
SUBCLASS_MISMATCH = "subclass-mismatch"
COMMENT = "comment"
INACTIVE_GROUP_CODE = "inactive-group-code"
INVALID_VALUE = "invalid-value"
COUNT_MISMATCH = "count-mismatch"
INCOMPLETE_POINT = "incomplete-point"
STRING_TOO_LONG = "string-too-long"
UNKNOWN_ENTITY_TYPE = "unknown-entity-type"

_INFO_KINDS = {COMMENT, INCOMPLETE_POINT}


class CodecError(Exception):
    def __init__(self, message: str, *, line_number: int | None = None) -> None:
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)
        self.line_number = line_number


class IoError(CodecError):
    pass


class UnexpectedEof(CodecError, ValueError):
    pass


class MalformedToken(CodecError, ValueError):
    pass


class SchemaViolation(CodecError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        dxftype: str | None = None,
        field: str | None = None,
        line_number: int | None = None,
    ) -> None:
        super().__init__(message, line_number=line_number)
        self.dxftype = dxftype
        self.field = field


class ResourceExhausted(CodecError):
    pass


class UnknownEntityType(CodecError, LookupError):
    pass


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    message: str
    line_number: int | None = None
    code: int | None = None

    @property
    def is_warning(self) -> bool:
        return self.kind not in _INFO_KINDS

    def __str__(self) -> str:
        where = f"line {self.line_number}: " if self.line_number is not None else ""
        return f"{where}{self.kind}: {self.message}"


class DiagnosticSink(Protocol):
    def warn(
        self, message: str, *, kind: str, line_number: int | None = None, code: int | None = None
    ) -> Diagnostic: ...

    def info(
        self, message: str, *, kind: str, line_number: int | None = None, code: int | None = None
    ) -> Diagnostic: ...


class Diagnostics:
    """Collects recoverable anomalies and mirrors them to ``logging``.

    The decoder hands every entry to the sink and also attaches it to the
    record being decoded, so nothing reported here is lost when the caller
    only looks at one of the two.
    """

    def __init__(self, source: str | None = None) -> None:
        self.source = source
        self.entries: list[Diagnostic] = []

    def warn(
        self, message: str, *, kind: str, line_number: int | None = None, code: int | None = None
    ) -> Diagnostic:
        entry = Diagnostic(kind=kind, message=message, line_number=line_number, code=code)
        self.entries.append(entry)
        logger.warning("%s%s", self._prefix(), entry)
        return entry

    def info(
        self, message: str, *, kind: str, line_number: int | None = None, code: int | None = None
    ) -> Diagnostic:
        entry = Diagnostic(kind=kind, message=message, line_number=line_number, code=code)
        self.entries.append(entry)
        logger.debug("%s%s", self._prefix(), entry)
        return entry

    def counts(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for entry in self.entries:
            out[entry.kind] = out.get(entry.kind, 0) + 1
        return dict(sorted(out.items()))

    def warnings(self) -> list[Diagnostic]:
        return [entry for entry in self.entries if entry.is_warning]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def _prefix(self) -> str:
        return f"{self.source}: " if self.source else ""
