import tempfile
from pathlib import Path

import eztags
from build_document import build

with tempfile.TemporaryDirectory() as workdir:
    source = Path(workdir) / "drawing_r2000.dxf"
    build().write(source)
    result = eztags.to_dxf(
        source,
        Path(workdir) / "drawing_r12_out.dxf",
        types="LINE ARC CIRCLE",
        dxf_version="R12",
    )
    print(result)
