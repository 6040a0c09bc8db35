from __future__ import annotations

import logging
import select
from collections import deque
from contextlib import contextmanager
from typing import ContextManager, Iterator

from prompt_toolkit.input import Input, create_input
from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.output import Output, create_output

from nmselect.errors import TerminalError


logger = logging.getLogger(__name__)

# How long a lone Esc byte waits for the rest of an escape sequence.
ESCAPE_FLUSH_TIMEOUT = 0.05
DEFAULT_MARKER = ">"


class TerminalSurface:
    """Full-screen text surface over a prompt_toolkit input/output pair.

    The program runs in raw mode. Anything that wants cooked output or
    line editing goes through ``line_edit()``, which resumes raw mode on
    every exit path. Scopes nest: only the outermost one touches the
    terminal.
    """

    def __init__(self, input: Input, output: Output, marker: str = DEFAULT_MARKER) -> None:
        self.input = input
        self.output = output
        self.marker = marker
        self._suspended: ContextManager[None] | None = None
        self._depth = 0

    @classmethod
    def create(cls, marker: str = DEFAULT_MARKER) -> "TerminalSurface":
        return cls(create_input(), create_output(), marker=marker)

    @property
    def line_editing(self) -> bool:
        return self._depth > 0

    @contextmanager
    def session(self) -> Iterator[None]:
        try:
            guard = self.input.raw_mode()
            guard.__enter__()
        except OSError as exc:
            raise TerminalError("enter raw mode", str(exc)) from exc
        logger.debug("Raw mode on")
        try:
            yield
        finally:
            guard.__exit__(None, None, None)
            logger.debug("Raw mode off")

    def enter_line_edit_mode(self) -> None:
        if self._depth == 0:
            guard = self.input.cooked_mode()
            try:
                guard.__enter__()
            except OSError as exc:
                raise TerminalError("leave raw mode", str(exc)) from exc
            self._suspended = guard
        self._depth += 1

    def resume_interactive_mode(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0 and self._suspended is not None:
            guard, self._suspended = self._suspended, None
            try:
                guard.__exit__(None, None, None)
            except OSError as exc:
                raise TerminalError("resume raw mode", str(exc)) from exc

    @contextmanager
    def line_edit(self) -> Iterator[None]:
        self.enter_line_edit_mode()
        try:
            yield
        finally:
            self.resume_interactive_mode()

    def clear_and_render(self, text: str) -> None:
        with self.line_edit():
            try:
                self.output.erase_screen()
                self.output.cursor_goto(1, 1)
                self.output.write(text)
                self.output.flush()
            except OSError as exc:
                raise TerminalError("draw the screen", str(exc)) from exc

    def place_marker(self, row: int, glyph: str | None = None) -> None:
        try:
            self.output.cursor_goto(row, 1)
            self.output.write(self.marker if glyph is None else glyph)
            self.output.flush()
        except OSError as exc:
            raise TerminalError("move the selection marker", str(exc)) from exc


class KeyReader:
    def __init__(self, input: Input, escape_timeout: float = ESCAPE_FLUSH_TIMEOUT) -> None:
        self.input = input
        self.escape_timeout = escape_timeout
        self._pending: deque[KeyPress] = deque()
        # Set after each read: the parser may be holding a partial escape sequence.
        self._holding = False

    def _wait(self, timeout: float | None) -> bool:
        try:
            ready, _, _ = select.select([self.input.fileno()], [], [], timeout)
        except (OSError, ValueError) as exc:
            raise TerminalError("read a key", str(exc)) from exc
        return bool(ready)

    def read_key(self) -> KeyPress:
        while not self._pending:
            if self._wait(self.escape_timeout if self._holding else None):
                keys = self.input.read_keys()
                if not keys and self.input.closed:
                    raise TerminalError("read a key", "input stream closed")
                self._holding = True
            else:
                keys = self.input.flush_keys()
                self._holding = False
            self._pending.extend(keys)
        return self._pending.popleft()

    def peek(self) -> KeyPress | None:
        return self._pending[0] if self._pending else None
