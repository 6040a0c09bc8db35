from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import Iterator, Sequence, Union

from nmselect.errors import CommandError, DecodeError, LaunchError, ParseError


logger = logging.getLogger(__name__)

EXTRA_BIN_PATHS = ("/usr/local/sbin", "/usr/sbin", "/sbin")
LIST_ARGS = ("device", "wifi", "list")
CONNECT_ARGS = ("device", "wifi", "connect")
PASSWORD_FLAG = "password"
SSID_HEADING_RE = re.compile(r"(?<!\S)SSID(?!\S)")
REDACTED = "********"
# Fixed-width prefix (status or address) followed by the identifier.
PREFIX_RE = re.compile(r"\s*\S+\s+")


@dataclass
class CommandResult:
    returncode: int
    stdout: bytes
    stderr: bytes


@dataclass(frozen=True)
class NetworkEntry:
    ssid: str
    raw: str


@dataclass(frozen=True)
class NetworkList:
    header: str
    entries: tuple[NetworkEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> NetworkEntry:
        return self.entries[index]

    def __iter__(self) -> Iterator[NetworkEntry]:
        return iter(self.entries)

    def ssids(self) -> list[str]:
        return [entry.ssid for entry in self.entries]

    def text(self) -> str:
        return "\n".join([self.header, *(entry.raw for entry in self.entries)])


@dataclass(frozen=True)
class Connected:
    message: str


@dataclass(frozen=True)
class Failed:
    diagnostic: str


ConnectOutcome = Union[Connected, Failed]


def _find_command(name: str) -> str | None:
    path_entries = [entry for entry in os.environ.get("PATH", "").split(os.pathsep) if entry]
    for extra in EXTRA_BIN_PATHS:
        if extra not in path_entries:
            path_entries.append(extra)
    return shutil.which(name, path=os.pathsep.join(path_entries))


def _run(command: Sequence[str], shown: Sequence[str] | None = None) -> CommandResult:
    shown = command if shown is None else shown
    try:
        result = subprocess.run(
            list(command),
            check=False,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise LaunchError(shown, "command not found") from exc
    except PermissionError as exc:
        raise LaunchError(shown, "permission denied") from exc
    except OSError as exc:
        raise LaunchError(shown, exc.strerror or str(exc)) from exc
    return CommandResult(returncode=result.returncode, stdout=result.stdout, stderr=result.stderr)


def _decode(data: bytes, command: Sequence[str], stream: str) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(command, stream) from exc


def _ssid_column(header: str, first_row: str) -> int:
    heading = SSID_HEADING_RE.search(header)
    if heading:
        return heading.start()
    prefix = PREFIX_RE.match(first_row)
    if prefix is None or prefix.end() == len(first_row):
        raise ParseError(2, first_row, "no identifier column after the prefix")
    return prefix.end()


def parse_network_list(text: str, ssid_column: int | None = None) -> NetworkList:
    lines = text.splitlines()
    if not lines:
        return NetworkList(header="")
    header, rows = lines[0], lines[1:]
    if not rows:
        return NetworkList(header=header)
    column = ssid_column if ssid_column is not None else _ssid_column(header, rows[0])
    entries: list[NetworkEntry] = []
    for number, line in enumerate(rows, start=2):
        if len(line) <= column:
            raise ParseError(number, line, f"shorter than identifier column {column}")
        if line[column].isspace():
            raise ParseError(number, line, f"no identifier at column {column}")
        entries.append(NetworkEntry(ssid=line[column:].split(None, 1)[0], raw=line))
    return NetworkList(header=header, entries=tuple(entries))


class NmcliClient:
    def __init__(self, command: str = "nmcli", ssid_column: int | None = None) -> None:
        self.command = command
        self.ssid_column = ssid_column

    def _executable(self) -> str:
        return _find_command(self.command) or self.command

    def list_networks(self) -> NetworkList:
        command = [self._executable(), *LIST_ARGS]
        logger.info("Scanning: %s", " ".join(command))
        result = _run(command)
        if result.returncode != 0:
            diagnostic = _decode(result.stderr, command, "stderr")
            logger.warning("Scan failed with status %s", result.returncode)
            raise CommandError(command, result.returncode, diagnostic)
        networks = parse_network_list(_decode(result.stdout, command, "stdout"), self.ssid_column)
        logger.info("Scan found %d network(s)", len(networks))
        return networks

    def connect(self, ssid: str, password: str) -> ConnectOutcome:
        command = [self._executable(), *CONNECT_ARGS, ssid, PASSWORD_FLAG, password]
        shown = command[:-1] + [REDACTED]
        logger.info("Connecting: %s", " ".join(shown))
        result = _run(command, shown)
        if result.returncode == 0:
            logger.info("Connected to %s", ssid)
            return Connected(_decode(result.stdout, shown, "stdout"))
        logger.warning("Connecting to %s failed with status %s", ssid, result.returncode)
        return Failed(_decode(result.stderr, shown, "stderr"))
