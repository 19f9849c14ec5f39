from eztags import TokenReader, decode, lookup
from build_document import build

schema = lookup("LINE")
text = build().dumps()

reader = TokenReader.from_text(text)
token = reader.next_token()
while token is not None:
    if token != (0, "LINE"):
        token = reader.next_token()
        continue
    result = decode(reader, schema, "R2000")
    line = result.record
    print(
        "LINE",
        f"handle={line.handle:X}",
        f"start={tuple(line['start'])}",
        f"end={tuple(line['end'])}",
        f"line={reader.line_number}",
        f"diagnostics={len(line.diagnostics)}",
    )
    token = result.terminator
