from typing import Sequence

from .catalog import REGISTRY
from .chain import Chain, ReleaseStats
from .convert import AuditResult, ConvertResult, audit, iter_ezdxf_tokens, to_dxf, to_ezdxf
from .decoder import DecodeResult, RecordSlice, decode, decode_slice, decode_slices, split_records
from .document import Document, RawRecord, WriteResult, loads, new, read
from .encoder import Encoder, encode
from .errors import (
    CodecError,
    Diagnostic,
    Diagnostics,
    IoError,
    MalformedToken,
    ResourceExhausted,
    SchemaViolation,
    UnexpectedEof,
    UnknownEntityType,
)
from .record import Point, Record
from .schema import lookup
from .tokens import PROFILES, Token, TokenReader, TokenWriter, WriterProfile

__all__ = [
    "read",
    "loads",
    "new",
    "Document",
    "RawRecord",
    "WriteResult",
    "Record",
    "Point",
    "Chain",
    "ReleaseStats",
    "decode",
    "decode_slice",
    "decode_slices",
    "split_records",
    "DecodeResult",
    "RecordSlice",
    "encode",
    "Encoder",
    "lookup",
    "REGISTRY",
    "Token",
    "TokenReader",
    "TokenWriter",
    "WriterProfile",
    "PROFILES",
    "to_dxf",
    "to_ezdxf",
    "audit",
    "iter_ezdxf_tokens",
    "ConvertResult",
    "AuditResult",
    "CodecError",
    "IoError",
    "UnexpectedEof",
    "MalformedToken",
    "SchemaViolation",
    "ResourceExhausted",
    "UnknownEntityType",
    "Diagnostic",
    "Diagnostics",
]


def main(argv: Sequence[str] | None = None) -> int:
    from eztags.cli import main as cli_main

    return cli_main(argv)
