from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Iterator

from .catalog import kind_of
from .document import Document, normalize_types, read
from .errors import IoError
from .policy import COLOR_BYLAYER, DEFAULT_LINETYPE
from .record import Record
from .tokens import DEFAULT_ENCODING, Token, WriterProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConvertResult:
    source_path: str
    output_path: str
    target_version: str
    total_entities: int
    written_entities: int
    skipped_entities: int
    skipped_by_type: dict[str, int]


@dataclass(frozen=True)
class AuditResult:
    path: str
    dxfversion: str
    entity_count: int
    errors: list[str]
    fixes: list[str]

    @property
    def ok(self) -> bool:
        return not self.errors


def to_dxf(
    source: str | Path | Document,
    output_path: str | Path,
    *,
    types: str | Iterable[str] | None = None,
    dxf_version: str | int | None = None,
    strict: bool = False,
    profile: str | WriterProfile | None = None,
    wide_graphics_size: bool | None = None,
) -> ConvertResult:
    source_path, doc = _resolve_document(source)
    view = _filtered(doc, types)
    text, result = view.render(
        dxf_version,
        profile=profile,
        strict=False,
        wide_graphics_size=wide_graphics_size,
    )
    entity_skips = {
        dxftype: count
        for dxftype, count in result.skipped_by_type.items()
        if kind_of(dxftype) == "entity"
    }
    total = len(view.entities)
    skipped = sum(entity_skips.values())
    if strict and result.skipped_records > 0:
        summary = ", ".join(f"{dxftype}:{count}" for dxftype, count in sorted(result.skipped_by_type.items()))
        raise ValueError(f"failed to convert {result.skipped_records} records ({summary})")

    out_path = Path(output_path)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8", errors="surrogateescape", newline="")
    except OSError as exc:
        raise IoError(f"cannot write {out_path}: {exc}") from exc

    return ConvertResult(
        source_path=source_path,
        output_path=str(out_path),
        target_version=result.version,
        total_entities=total,
        written_entities=total - skipped,
        skipped_entities=skipped,
        skipped_by_type=entity_skips,
    )


def to_ezdxf(
    source: str | Path | Document,
    *,
    types: str | Iterable[str] | None = None,
    dxf_version: str = "R2010",
) -> tuple[Any, ConvertResult]:
    ezdxf = _require_ezdxf()
    from ezdxf.lldxf.const import DXFError

    source_path, doc = _resolve_document(source)
    dxf_doc = ezdxf.new(dxfversion=dxf_version)
    for layer in doc.query("LAYER"):
        _add_layer(dxf_doc, layer)

    modelspace = dxf_doc.modelspace()
    selected = set(normalize_types(types))
    total = 0
    written = 0
    skipped_by_type: dict[str, int] = {}
    for item in doc.entities:
        if not isinstance(item, Record) or item.dxftype not in selected:
            continue
        total += 1
        try:
            if _write_entity_to_modelspace(modelspace, dxf_doc, item):
                written += 1
                continue
        except (TypeError, ValueError, KeyError, DXFError) as exc:
            logger.warning("cannot export %r to ezdxf: %s", item, exc)
        skipped_by_type[item.dxftype] = skipped_by_type.get(item.dxftype, 0) + 1

    result = ConvertResult(
        source_path=source_path,
        output_path="",
        target_version=dxf_doc.dxfversion,
        total_entities=total,
        written_entities=written,
        skipped_entities=total - written,
        skipped_by_type=dict(sorted(skipped_by_type.items())),
    )
    return dxf_doc, result


def audit(path: str | Path) -> AuditResult:
    _require_ezdxf()
    from ezdxf import recover

    dxf_doc, auditor = recover.readfile(str(path))
    return AuditResult(
        path=str(path),
        dxfversion=dxf_doc.dxfversion,
        entity_count=len(dxf_doc.modelspace()),
        errors=[str(entry.message) for entry in auditor.errors],
        fixes=[str(entry.message) for entry in auditor.fixes],
    )


def iter_ezdxf_tokens(path: str | Path, *, encoding: str = DEFAULT_ENCODING) -> Iterator[Token]:
    _require_ezdxf()
    from ezdxf.lldxf.tagger import ascii_tags_loader

    with open(path, "r", encoding=encoding, errors="surrogateescape") as stream:
        for tag in ascii_tags_loader(stream, skip_comments=False):
            yield Token(int(tag.code), str(tag.value))


def _require_ezdxf():
    try:
        import ezdxf
    except Exception as exc:
        raise ImportError(
            "ezdxf is required for DXF auditing and export. "
            'Install it with `pip install "eztags[dxf]"`.'
        ) from exc
    return ezdxf


def _resolve_document(source: str | Path | Document) -> tuple[str, Document]:
    if isinstance(source, Document):
        return source.path or "<memory>", source
    return str(source), read(source)


def _filtered(doc: Document, types: str | Iterable[str] | None) -> Document:
    if types is None:
        return doc
    selected = set(normalize_types(types))
    entities = [
        item
        for item in doc.entities
        if isinstance(item, Record) and item.dxftype in selected
    ]
    return replace(doc, entities=entities, chains={})


def _add_layer(dxf_doc: Any, layer: Record) -> None:
    name = layer.get("name")
    if not name or name in dxf_doc.layers:
        return
    attribs: dict[str, Any] = {"color": int(layer.get("color", 7))}
    linetype = layer.get("linetype")
    if linetype and linetype in dxf_doc.linetypes:
        attribs["linetype"] = linetype
    dxf_doc.layers.new(name, dxfattribs=attribs)


def _entity_dxfattribs(dxf_doc: Any, record: Record) -> dict[str, Any]:
    attribs: dict[str, Any] = {"layer": record.get("layer") or "0"}
    color = record.get("color")
    if color is not None and int(color) != COLOR_BYLAYER:
        attribs["color"] = int(color)
    linetype = record.get("linetype")
    if linetype and linetype != DEFAULT_LINETYPE and linetype in dxf_doc.linetypes:
        attribs["linetype"] = linetype
    thickness = record.get("thickness")
    if thickness:
        attribs["thickness"] = float(thickness)
    return attribs


def _write_entity_to_modelspace(modelspace: Any, dxf_doc: Any, record: Record) -> bool:
    dxftype = record.dxftype
    dxfattribs = _entity_dxfattribs(dxf_doc, record)

    if dxftype == "LINE":
        modelspace.add_line(record["start"], record["end"], dxfattribs=dxfattribs)
        return True

    if dxftype == "POINT":
        modelspace.add_point(record["location"], dxfattribs=dxfattribs)
        return True

    if dxftype == "CIRCLE":
        modelspace.add_circle(record["center"], float(record["radius"]), dxfattribs=dxfattribs)
        return True

    if dxftype == "ARC":
        modelspace.add_arc(
            record["center"],
            float(record["radius"]),
            float(record["start_angle"]),
            float(record["end_angle"]),
            dxfattribs=dxfattribs,
        )
        return True

    if dxftype == "3DFACE":
        modelspace.add_3dface(
            [record["vtx0"], record["vtx1"], record["vtx2"], record["vtx3"]],
            dxfattribs=dxfattribs,
        )
        return True

    if dxftype == "SPLINE":
        spline = modelspace.add_spline(dxfattribs=dxfattribs)
        spline.dxf.degree = int(record["degree"])
        spline.dxf.flags = int(record["flags"])
        if record["control_points"]:
            spline.control_points = list(record["control_points"])
        if record["knots"]:
            spline.knots = list(record["knots"])
        if record["weights"]:
            spline.weights = list(record["weights"])
        if record["fit_points"]:
            spline.fit_points = list(record["fit_points"])
        return True

    return False

