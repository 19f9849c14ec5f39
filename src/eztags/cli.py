from __future__ import annotations

import argparse
import logging
import os
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Sequence

from .catalog import ENTITY_TYPES, OBJECT_TYPES, TABLE_TYPES
from .convert import audit, to_dxf
from .document import read
from .errors import Diagnostics
from .tokens import PROFILES

PROFILE_ENV = "EZTAGS_PROFILE"
_CATALOG_ORDER = TABLE_TYPES + ENTITY_TYPES + OBJECT_TYPES


def _package_version() -> str:
    try:
        return version("eztags")
    except PackageNotFoundError:
        return "0.0.0"


def _default_profile() -> str:
    return os.environ.get(PROFILE_ENV, "").strip().lower() or "acad"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eztags", description="Inspect, convert, and audit DXF tag streams.")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_package_version()}",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level for decoder diagnostics (default: WARNING).",
    )
    subparsers = parser.add_subparsers(dest="command")

    inspect_parser = subparsers.add_parser("inspect", help="Show basic DXF information.")
    inspect_parser.add_argument("path", help="Path to DXF file.")
    inspect_parser.add_argument(
        "--verbose",
        action="store_true",
        help="List every diagnostic instead of counts only.",
    )

    convert_parser = subparsers.add_parser(
        "convert",
        help="Rewrite a DXF file at another version or with another writer profile.",
    )
    convert_parser.add_argument("input_path", help="Path to input DXF file.")
    convert_parser.add_argument("output_path", help="Path to output DXF file.")
    convert_parser.add_argument(
        "--types",
        default=None,
        help='Entity filter passed to query(), e.g. "LINE ARC 3DFACE".',
    )
    convert_parser.add_argument(
        "--dxf-version",
        default=None,
        help="Target DXF version, e.g. R12/R2000/AC1032 (default: keep the input version).",
    )
    convert_parser.add_argument(
        "--profile",
        default=None,
        choices=sorted(PROFILES),
        help=f"Writer profile (default: ${PROFILE_ENV} or acad).",
    )
    convert_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail if any record cannot be written.",
    )
    convert_parser.add_argument(
        "--wide-graphics-size",
        action="store_true",
        help="Write the graphics data size under group code 160 (64-bit targets).",
    )

    audit_parser = subparsers.add_parser("audit", help="Load a DXF file with ezdxf and report audit results.")
    audit_parser.add_argument("path", help="Path to DXF file.")
    return parser


def _run_inspect(path: str, *, verbose: bool = False) -> int:
    file_path = Path(path)
    if not file_path.exists():
        print(f"error: file not found: {file_path}", file=sys.stderr)
        return 2

    diagnostics = Diagnostics(str(file_path))
    try:
        doc = read(file_path, sink=diagnostics)
    except Exception as exc:
        print(f"error: failed to read DXF: {exc}", file=sys.stderr)
        return 2

    counts = doc.counts()
    print(f"file: {file_path}")
    print(f"version: {doc.acadver}")
    print(f"release: {doc.release}")
    print(f"total_records: {sum(counts.values())}")
    for dxftype in _CATALOG_ORDER:
        count = counts.get(dxftype, 0)
        if count > 0:
            print(f"{dxftype}: {count}")
    for dxftype, count in sorted(counts.items()):
        if dxftype not in _CATALOG_ORDER:
            print(f"raw[{dxftype}]: {count}")
    for kind, count in diagnostics.counts().items():
        print(f"diagnostics[{kind}]: {count}")
    if verbose:
        for entry in diagnostics:
            print(f"diagnostic: {entry}")
    return 0


def _run_convert(
    input_path: str,
    output_path: str,
    *,
    types: str | None = None,
    dxf_version: str | None = None,
    profile: str | None = None,
    strict: bool = False,
    wide_graphics_size: bool = False,
) -> int:
    dxf_path = Path(input_path)
    if not dxf_path.exists():
        print(f"error: file not found: {dxf_path}", file=sys.stderr)
        return 2

    try:
        result = to_dxf(
            str(dxf_path),
            output_path,
            types=types,
            dxf_version=dxf_version,
            strict=strict,
            profile=profile or _default_profile(),
            wide_graphics_size=True if wide_graphics_size else None,
        )
    except Exception as exc:
        print(f"error: failed to convert DXF: {exc}", file=sys.stderr)
        return 2

    print(f"input: {result.source_path}")
    print(f"output: {result.output_path}")
    print(f"target_version: {result.target_version}")
    print(f"total_entities: {result.total_entities}")
    print(f"written_entities: {result.written_entities}")
    print(f"skipped_entities: {result.skipped_entities}")
    for dxftype, count in result.skipped_by_type.items():
        print(f"skipped[{dxftype}]: {count}")
    return 0


def _run_audit(path: str) -> int:
    file_path = Path(path)
    if not file_path.exists():
        print(f"error: file not found: {file_path}", file=sys.stderr)
        return 2

    try:
        result = audit(file_path)
    except Exception as exc:
        print(f"error: failed to audit DXF: {exc}", file=sys.stderr)
        return 2

    print(f"file: {result.path}")
    print(f"dxfversion: {result.dxfversion}")
    print(f"entities: {result.entity_count}")
    print(f"errors: {len(result.errors)}")
    print(f"fixes: {len(result.fixes)}")
    for message in result.errors:
        print(f"error[{message}]")
    return 0 if result.ok else 1


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "inspect":
        return _run_inspect(args.path, verbose=bool(args.verbose))
    if args.command == "convert":
        return _run_convert(
            args.input_path,
            args.output_path,
            types=args.types,
            dxf_version=args.dxf_version,
            profile=args.profile,
            strict=bool(args.strict),
            wide_graphics_size=bool(args.wide_graphics_size),
        )
    if args.command == "audit":
        return _run_audit(args.path)

    parser.print_help()
    return 0
