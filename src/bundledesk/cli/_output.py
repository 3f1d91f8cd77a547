"""Output formatting helpers for the CLI."""

from __future__ import annotations

import json
import sys
from typing import Any, Sequence


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def print_table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
    """Print rows as left-aligned text columns under a header rule."""
    if not rows:
        print("(no bundles)")
        return

    cells = [[str(v) for v in row] for row in rows]
    widths = [
        max([len(header)] + [len(row[i]) for row in cells if i < len(row)])
        for i, header in enumerate(headers)
    ]

    def line(values: Sequence[str]) -> str:
        return "  ".join(v.ljust(widths[i]) for i, v in enumerate(values)).rstrip()

    print(line(list(headers)))
    print(line(["-" * w for w in widths]))
    for row in cells:
        print(line(row))


def print_object(data: dict[str, Any], *, json_mode: bool = False) -> None:
    """Print a flat mapping as JSON or as ``key: value`` lines."""
    if json_mode:
        print_json(data)
        return
    width = max((len(k) for k in data), default=0)
    for key, value in data.items():
        print(f"{key.ljust(width)}  {value}")


def print_error(msg: str) -> None:
    """Print an error message to stderr."""
    print(f"Error: {msg}", file=sys.stderr)
