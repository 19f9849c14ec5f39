from __future__ import annotations

import io
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Iterator, NamedTuple, TextIO

from .errors import IoError, MalformedToken

DEFAULT_ENCODING = "utf-8"
STRUCTURE_CODE = 0
SUBCLASS_CODE = 100
APP_GROUP_CODE = 102
COMMENT_CODE = 999


class Token(NamedTuple):
    code: int
    value: str


class TokenReader:
    """Reads (group code, value) pairs from a line oriented text stream.

    Every call consumes exactly two physical lines. ``line_number`` is the
    number of the last line read, which is the value line of the token just
    returned.
    """

    def __init__(self, stream: TextIO, *, name: str = "<stream>") -> None:
        self._stream = stream
        self.name = name
        self.line_number = 0
        self._eof = False

    @classmethod
    @contextmanager
    def open(cls, path: str | Path, *, encoding: str = DEFAULT_ENCODING) -> Iterator["TokenReader"]:
        try:
            handle = open(path, "r", encoding=encoding, errors="surrogateescape", newline=None)
        except OSError as exc:
            raise IoError(f"cannot open {path}: {exc}") from exc
        try:
            yield cls(handle, name=str(path))
        finally:
            handle.close()

    @classmethod
    def from_text(cls, text: str, *, name: str = "<string>") -> "TokenReader":
        return cls(io.StringIO(text), name=name)

    @property
    def is_eof(self) -> bool:
        return self._eof

    def next_token(self) -> Token | None:
        if self._eof:
            return None
        code_line = self._read_line()
        if code_line is None:
            self._eof = True
            return None
        code_text = code_line.strip()
        value_line = self._read_line()
        if value_line is None:
            self._eof = True
            if not code_text:
                return None
            raise MalformedToken(
                f"{self.name}: group code {code_text!r} has no value line",
                line_number=self.line_number,
            )
        try:
            code = int(code_text)
        except ValueError:
            raise MalformedToken(
                f"{self.name}: invalid group code {code_text!r}",
                line_number=self.line_number - 1,
            ) from None
        return Token(code, value_line.strip())

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            if token is None:
                return
            yield token

    def _read_line(self) -> str | None:
        try:
            line = self._stream.readline()
        except (OSError, UnicodeDecodeError) as exc:
            raise IoError(f"{self.name}: read failed: {exc}", line_number=self.line_number + 1) from exc
        if line == "":
            return None
        self.line_number += 1
        return line


@dataclass(frozen=True)
class WriterProfile:
    name: str
    code_width: int = 3
    float_format: str = "repr"
    handle_case: str = "upper"
    newline: str = "\n"
    wide_graphics_size: bool = False

    def format_code(self, code: int) -> str:
        if self.code_width <= 0:
            return str(code)
        return str(code).rjust(self.code_width)

    def format_double(self, value: float) -> str:
        value = float(value)
        if self.float_format == "repr":
            return repr(value)
        return self.float_format % value

    def format_handle(self, value: int) -> str:
        text = f"{int(value):X}"
        return text if self.handle_case == "upper" else text.lower()

    def with_options(self, **changes) -> "WriterProfile":
        return replace(self, **changes)


PROFILES: dict[str, WriterProfile] = {
    "acad": WriterProfile(name="acad"),
    "legacy": WriterProfile(name="legacy", float_format="%f", handle_case="lower"),
    "compact": WriterProfile(name="compact", code_width=0),
}
DEFAULT_PROFILE = PROFILES["acad"]


def resolve_profile(profile: str | WriterProfile | None) -> WriterProfile:
    if profile is None:
        return DEFAULT_PROFILE
    if isinstance(profile, WriterProfile):
        return profile
    try:
        return PROFILES[profile.strip().lower()]
    except KeyError:
        known = ", ".join(sorted(PROFILES))
        raise ValueError(f"unknown writer profile: {profile} (expected one of: {known})") from None


class TokenWriter:
    def __init__(self, stream: TextIO, profile: WriterProfile | None = None) -> None:
        self._stream = stream
        self.profile = profile or DEFAULT_PROFILE
        self.tokens_written = 0

    def write(self, token: Token) -> None:
        newline = self.profile.newline
        text = f"{self.profile.format_code(token.code)}{newline}{token.value}{newline}"
        try:
            self._stream.write(text)
        except OSError as exc:
            raise IoError(f"write failed after {self.tokens_written} tokens: {exc}") from exc
        self.tokens_written += 1

    def write_all(self, tokens: Iterable[Token]) -> int:
        count = 0
        for token in tokens:
            self.write(token)
            count += 1
        return count


def format_tokens(tokens: Iterable[Token], profile: WriterProfile | None = None) -> str:
    buffer = io.StringIO()
    TokenWriter(buffer, profile).write_all(tokens)
    return buffer.getvalue()


def parse_tokens(text: str) -> list[Token]:
    return list(TokenReader.from_text(text))
