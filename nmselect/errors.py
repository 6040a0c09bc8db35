from __future__ import annotations

from typing import Sequence


def _format_command(command: Sequence[str]) -> str:
    return " ".join(command)


class NmselectError(Exception):
    """Base class for every failure nmselect reports to the user."""


class LaunchError(NmselectError):
    def __init__(self, command: Sequence[str], reason: str) -> None:
        self.command = list(command)
        self.reason = reason
        super().__init__(f"Could not start `{_format_command(self.command)}`: {reason}")


class CommandError(NmselectError):
    def __init__(self, command: Sequence[str], returncode: int, diagnostic: str) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.diagnostic = diagnostic
        message = f"`{_format_command(self.command)}` exited with status {returncode}"
        if diagnostic.strip():
            message += f":\n{diagnostic.rstrip()}"
        super().__init__(message)


class DecodeError(NmselectError):
    def __init__(self, command: Sequence[str], stream: str) -> None:
        self.command = list(command)
        self.stream = stream
        super().__init__(f"`{_format_command(self.command)}` wrote {stream} that is not valid UTF-8")


class ParseError(NmselectError):
    def __init__(self, line_number: int, line: str, reason: str) -> None:
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed network listing at line {line_number} ({reason}):\n{line}")


class TerminalError(NmselectError):
    def __init__(self, operation: str, reason: str = "") -> None:
        self.operation = operation
        self.reason = reason
        message = f"Terminal failure while trying to {operation}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
