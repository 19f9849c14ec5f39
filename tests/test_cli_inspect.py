from __future__ import annotations

from pathlib import Path

import pytest

import eztags
import eztags.cli as cli_module
from eztags.errors import UNKNOWN_ENTITY_TYPE
from tests._dxf_helpers import dxf_entities_of_type, wrap_document

ENTITIES = [
    (0, "LINE"),
    (5, "2A"),
    (100, "AcDbEntity"),
    (8, "0"),
    (100, "AcDbLine"),
    (10, 0.0), (20, 0.0), (30, 0.0),
    (11, 1.0), (21, 1.0), (31, 0.0),
    (0, "ACME_WIDGET"),
    (1, "opaque"),
    (0, "CIRCLE"),
    (5, "2B"),
    (100, "AcDbEntity"),
    (8, "0"),
    (100, "AcDbCircle"),
    (10, 0.0), (20, 0.0), (30, 0.0),
    (40, 2.0),
]


def _sample(tmp_path: Path) -> Path:
    path = tmp_path / "sample.dxf"
    path.write_text(wrap_document(entities=ENTITIES), encoding="utf-8")
    return path


def test_cli_inspect_reports_counts(tmp_path: Path, capsys) -> None:
    path = _sample(tmp_path)

    code = cli_module._run_inspect(str(path))
    captured = capsys.readouterr()

    assert code == 0
    lines = captured.out.splitlines()
    assert f"file: {path}" in lines
    assert "version: AC1015" in lines
    assert "release: R2000" in lines
    assert "total_records: 3" in lines
    assert lines.index("LINE: 1") < lines.index("CIRCLE: 1")
    assert "raw[ACME_WIDGET]: 1" in lines
    assert f"diagnostics[{UNKNOWN_ENTITY_TYPE}]: 1" in lines
    assert "diagnostic:" not in captured.out


def test_cli_inspect_verbose_lists_diagnostics(tmp_path: Path, capsys) -> None:
    code = cli_module.main(["inspect", str(_sample(tmp_path)), "--verbose"])
    captured = capsys.readouterr()

    assert code == 0
    assert "diagnostic:" in captured.out
    assert "ACME_WIDGET" in captured.out


def test_cli_inspect_reports_unreadable_file(tmp_path: Path, capsys) -> None:
    path = tmp_path / "broken.dxf"
    path.write_text("  0\nSECTION\n  2\nENTITIES\n  0\nLINE\n  8\n", encoding="utf-8")

    code = cli_module._run_inspect(str(path))
    captured = capsys.readouterr()

    assert code == 2
    assert captured.err.startswith("error: failed to read DXF:")


def test_cli_missing_file_returns_error(tmp_path: Path, capsys) -> None:
    missing = tmp_path / "missing.dxf"

    assert cli_module.main(["inspect", str(missing)]) == 2
    assert cli_module.main(["convert", str(missing), str(tmp_path / "out.dxf")]) == 2
    assert cli_module.main(["audit", str(missing)]) == 2
    captured = capsys.readouterr()
    assert captured.err.count("error: file not found:") == 3


def test_cli_convert_writes_output(tmp_path: Path, capsys) -> None:
    output = tmp_path / "out.dxf"

    code = cli_module.main(
        ["convert", str(_sample(tmp_path)), str(output), "--types", "LINE", "--dxf-version", "R12"]
    )
    captured = capsys.readouterr()

    assert code == 0
    assert "target_version: AC1009" in captured.out
    assert "total_entities: 1" in captured.out
    assert "written_entities: 1" in captured.out
    assert len(dxf_entities_of_type(output, "LINE")) == 1
    assert dxf_entities_of_type(output, "CIRCLE") == []


def test_cli_convert_uses_profile_from_environment(monkeypatch, tmp_path: Path, capsys) -> None:
    monkeypatch.setenv(cli_module.PROFILE_ENV, "compact")
    output = tmp_path / "compact.dxf"

    code = cli_module._run_convert(str(_sample(tmp_path)), str(output))
    capsys.readouterr()

    assert code == 0
    assert output.read_text(encoding="utf-8").startswith("0\nSECTION\n")


def test_cli_convert_strict_fails_on_invalid_record(tmp_path: Path, capsys) -> None:
    doc = eztags.new("R2000")
    doc.add(eztags.Record(eztags.lookup("CIRCLE"), {"center": (0, 0, 0)}))

    with pytest.raises(ValueError, match="failed to convert"):
        eztags.to_dxf(doc, tmp_path / "memory.dxf", strict=True)

    source = tmp_path / "spline.dxf"
    doc = eztags.new("R2000")
    doc.add(
        eztags.Record(
            eztags.lookup("SPLINE"),
            {"degree": 1, "knots": [0, 0, 1, 1], "control_points": [(0, 0, 0), (1, 0, 0)]},
        )
    )
    doc.write(source)
    output = tmp_path / "out.dxf"

    code = cli_module._run_convert(str(source), str(output), dxf_version="R12", strict=True)
    captured = capsys.readouterr()

    assert code == 2
    assert "failed to convert" in captured.err
    assert not output.exists()


def test_cli_audit_reports_ezdxf_result(tmp_path: Path, capsys) -> None:
    pytest.importorskip("ezdxf")
    dxf_doc, _result = eztags.to_ezdxf(str(_sample(tmp_path)))
    output = tmp_path / "audited.dxf"
    dxf_doc.saveas(output)

    code = cli_module._run_audit(str(output))
    captured = capsys.readouterr()

    assert code == 0
    assert "dxfversion: AC1024" in captured.out
    assert "entities: 2" in captured.out
    assert "errors: 0" in captured.out


def test_cli_version_flag(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["--version"])

    assert excinfo.value.code == 0
    assert capsys.readouterr().out.startswith("eztags ")


def test_cli_without_command_prints_help(capsys) -> None:
    assert eztags.main([]) == 0
    assert "inspect" in capsys.readouterr().out
