import sys
from pathlib import Path

import eztags
from eztags import Record, lookup


def build() -> eztags.Document:
    doc = eztags.new("R2000")
    doc.add(Record(lookup("LAYER"), {"handle": 0x10, "name": "WALLS", "color": 1}))
    for index in range(4):
        doc.add(
            Record(
                lookup("LINE"),
                {
                    "handle": 0x20 + index,
                    "layer": "WALLS",
                    "start": (index * 10.0, 0.0, 0.0),
                    "end": (index * 10.0, 10.0, 0.0),
                },
            )
        )
    doc.add(Record(lookup("CIRCLE"), {"handle": 0x30, "center": (15.0, 5.0, 0.0), "radius": 2.5}))
    return doc


def main() -> None:
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("drawing_r2000.dxf")
    result = build().write(path)
    print(f"written: {result.written_records} records ({result.version}) to {result.output_path}")


if __name__ == "__main__":
    main()
