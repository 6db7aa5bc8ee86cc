from __future__ import annotations

import logging
import sys
from pathlib import Path

from pipeline.graph import initial_state, pipeline
from utils.visualize import contact_sheet, graph_diagram, save_renderings

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def describe(value) -> str:
    """Short, printable form of a state value (buffers and bytes are summarised)."""
    if isinstance(value, dict):
        return "{" + ", ".join(f"{k}: {describe(v)}" for k, v in value.items()) + "}"
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    if hasattr(value, "width") and hasattr(value, "height"):
        return f"<{type(value).__name__} {value.width}x{value.height}>"
    return repr(value)


def main(image_path: str = "test.jpg") -> None:
    """
    Stream one image through the graph, printing each node's state delta,
    then write the three renderings and a side-by-side sheet next to the input.
    """
    path = Path(image_path)
    print(graph_diagram("ascii"))

    encoded = None
    for step in pipeline.stream(initial_state(path.read_bytes())):
        node = list(step.keys())[0]
        delta = step[node] or {}
        print("\n" + "=" * 40)
        print(f"NODE: {node}")
        print(f"DELTA: {describe(delta)}")
        if delta.get("encoded"):
            encoded = delta["encoded"]

    if not encoded:
        print("No renderings produced.")
        return

    for out in save_renderings(encoded, str(path)):
        print(f"Saved → {out}")

    sheet = path.with_name(f"{path.stem}_sheet.png")
    sheet.write_bytes(contact_sheet(encoded))
    print(f"Saved → {sheet}")


if __name__ == "__main__":
    main(*sys.argv[1:2])
