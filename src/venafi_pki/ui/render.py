"""Plain-text output rendering for the venafi-pki CLI.

Output is deterministic: no color, no terminal probing. Tests pass their own
stream.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Sequence


class CLIRenderer:
    """Thin CLI output renderer writing to ``stream`` (default: stdout)."""

    def __init__(self, *, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def _write(self, line: str) -> None:
        print(line, file=self.stream)

    def text(self, line: str) -> None:
        self._write(line)

    def table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        """Print a left-aligned ASCII table; nothing for zero rows."""

        if not rows:
            return

        widths = [len(header) for header in headers]
        for row in rows:
            for index, cell in enumerate(row[: len(headers)]):
                widths[index] = max(widths[index], len(cell))

        def _pad(cells: Sequence[str]) -> str:
            return "  ".join(
                (cells[index] if index < len(cells) else "").ljust(width)
                for index, width in enumerate(widths)
            ).rstrip()

        self._write(_pad(list(headers)))
        self._write("  ".join("-" * width for width in widths))
        for row in rows:
            self._write(_pad(list(row)))


def create_renderer(*, stream: TextIO | None = None) -> CLIRenderer:
    return CLIRenderer(stream=stream)


__all__ = ["CLIRenderer", "create_renderer"]
