"""In-memory buffer for script ``print`` output."""

from __future__ import annotations

from io import StringIO


class OutputCapture:
    """Accumulates text written by the sandbox's ``print``.

    Cleared before each execution and read once afterwards. Writes are kept in
    call order.
    """

    def __init__(self):
        self._buffer = StringIO()

    def clear(self) -> None:
        self._buffer = StringIO()

    def write(self, text: str) -> None:
        self._buffer.write(text)

    def getvalue(self) -> str:
        return self._buffer.getvalue()

    def __len__(self) -> int:
        return self._buffer.tell()
