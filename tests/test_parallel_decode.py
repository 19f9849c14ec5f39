from __future__ import annotations

import pytest

from eztags.catalog import LINE
from eztags.chain import Chain
from eztags.decoder import RecordSlice, decode_slice, decode_slices, split_records
from eztags.encoder import Encoder
from eztags.errors import Diagnostics
from eztags.record import Record
from eztags.tokens import Token, TokenReader, format_tokens


def _stream(count: int) -> list[Token]:
    encoder = Encoder("R2000")
    tokens: list[Token] = []
    for index in range(count):
        tokens.extend(encoder.encode(Record(LINE, {"handle": index + 1, "start": (index, 0, 0), "end": (index, 1, 0)})))
    return tokens


def test_split_records_cuts_at_structure_tags() -> None:
    slices = split_records(_stream(3))

    assert len(slices) == 3
    assert all(piece.dxftype == "LINE" for piece in slices)
    assert slices[0].first_line == 1
    assert slices[1].first_line == 1 + 2 * len(slices[0].tokens)


def test_split_records_uses_reader_line_numbers() -> None:
    reader = TokenReader.from_text(format_tokens(_stream(2)))

    slices = split_records(reader)

    assert slices[0].first_line == 1
    assert slices[1].first_line == 1 + 2 * len(slices[0].tokens)


def test_decode_slices_keeps_stream_order() -> None:
    slices = split_records(_stream(50))

    chain = decode_slices(slices, LINE, "R2000", max_workers=4)

    assert [record.handle for record in chain] == list(range(1, 51))
    assert chain[10]["start"] == (10.0, 0.0, 0.0)


def test_parallel_and_serial_decode_agree() -> None:
    slices = split_records(_stream(20))

    parallel = decode_slices(slices, LINE, "R2000", max_workers=4)
    serial = decode_slices(slices, LINE, "R2000", max_workers=1)

    assert list(parallel) == list(serial)


def test_decode_slices_appends_to_existing_chain() -> None:
    chain = Chain(LINE)

    result = decode_slices(split_records(_stream(3)), LINE, "R2000", chain=chain)

    assert result is chain
    assert len(chain) == 3


def test_slice_diagnostics_carry_line_numbers() -> None:
    tokens = _stream(1) + [Token(0, "LINE"), Token(8, "0"), Token(1071, "5")]
    slices = split_records(tokens)
    sink = Diagnostics()

    chain = decode_slices(slices, LINE, "R2000", sink=sink)

    entry = chain[1].diagnostics[0]
    assert entry.code == 1071
    assert entry.line_number == slices[1].first_line + 5
    assert sink.entries == [entry]


def test_decode_slice_checks_type() -> None:
    piece = RecordSlice((Token(0, "CIRCLE"), Token(8, "0")), 1)

    with pytest.raises(ValueError, match="expected LINE"):
        decode_slice(piece, LINE, "R2000")
