"""Indentation-aware line emitter used by the backend.

Output is buffered in memory; nothing reaches a file or stream until the
caller asks for :meth:`CodeEmitter.get_code`.  A lowering error therefore
never leaves partial output behind.
"""

from __future__ import annotations

from io import StringIO
from typing import Any


class CodeEmitter:
    """Low-level code emission with indentation management.

    Provides:
    - Automatic indentation tracking
    - Block context managers
    - Raw (unindented) multi-line emission for fixed preludes
    """

    def __init__(self, indent_str: str = " ") -> None:
        self._buffer = StringIO()
        self._indent_str = indent_str
        self._indent_level = 0
        self._line_count = 0

    def emit(self, code: str = "") -> None:
        """Emit a line of code at the current indentation.

        Blank lines are written without indentation.
        """
        if code.strip():
            self._buffer.write(self._indent_str * self._indent_level)
            self._buffer.write(code)
        self._buffer.write("\n")
        self._line_count += 1

    def emit_raw(self, code: str) -> None:
        """Emit code verbatim, one output line per line of *code*."""
        for line in code.splitlines():
            self._buffer.write(line)
            self._buffer.write("\n")
            self._line_count += 1

    def emit_blank(self, count: int = 1) -> None:
        for _ in range(count):
            self.emit()

    def indent(self) -> None:
        """Increase indentation level."""
        self._indent_level += 1

    def dedent(self) -> None:
        """Decrease indentation level."""
        self._indent_level = max(0, self._indent_level - 1)

    @property
    def indent_level(self) -> int:
        return self._indent_level

    @property
    def line_count(self) -> int:
        return self._line_count

    def block(self, header: str) -> "CodeEmitter._BlockContext":
        """Context manager for indented blocks."""
        return self._BlockContext(self, header)

    class _BlockContext:
        """Context manager for code blocks."""

        def __init__(self, emitter: "CodeEmitter", header: str) -> None:
            self._emitter = emitter
            self._header = header

        def __enter__(self) -> "CodeEmitter":
            self._emitter.emit(self._header)
            self._emitter.indent()
            return self._emitter

        def __exit__(self, *args: Any) -> None:
            self._emitter.dedent()

    def get_code(self) -> str:
        """Get the generated code."""
        return self._buffer.getvalue()
