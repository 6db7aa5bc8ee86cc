from __future__ import annotations

import io
from pathlib import Path
from typing import Dict, List, Mapping

from PIL import Image

from pipeline.graph import pipeline

# Left-to-right order used for saved files and the contact sheet
PANELS = ("overlay", "spectral", "mask_image")


def graph_diagram(fmt: str = "ascii") -> str:
    """
    Text drawing of the detection graph.

    `ascii` needs `grandalf`; `mermaid` returns source for mermaid.live.
    """
    graph = pipeline.get_graph()
    if fmt == "ascii":
        return graph.draw_ascii()
    if fmt == "mermaid":
        return graph.draw_mermaid()
    raise ValueError(f"unknown diagram format: {fmt}")


def save_renderings(encoded: Mapping[str, bytes], image_path: str) -> List[Path]:
    """Writes each encoded rendering as `<stem>_<name>.png` beside the input."""
    path = Path(image_path)
    written = []
    for key in PANELS:
        if key not in encoded:
            continue
        out = path.with_name(f"{path.stem}_{key}.png")
        out.write_bytes(encoded[key])
        written.append(out)
    return written


def contact_sheet(encoded: Mapping[str, bytes], gap: int = 8) -> bytes:
    """
    Places the renderings side by side on a black strip, in PANELS order.

    All renderings of one run share the input's size, so panels are pasted
    without resizing.
    """
    panels: Dict[str, Image.Image] = {
        key: Image.open(io.BytesIO(encoded[key])).convert("RGBA")
        for key in PANELS
        if key in encoded
    }
    if not panels:
        raise ValueError("no renderings to lay out")

    w = max(p.width for p in panels.values())
    h = max(p.height for p in panels.values())
    sheet = Image.new("RGBA", (len(panels) * w + (len(panels) - 1) * gap, h), (0, 0, 0, 255))
    for i, panel in enumerate(panels.values()):
        sheet.paste(panel, (i * (w + gap), 0))

    out = io.BytesIO()
    sheet.save(out, format="PNG")
    return out.getvalue()


if __name__ == "__main__":
    print(graph_diagram("ascii"))
    print(graph_diagram("mermaid"))
