from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Union

from prompt_toolkit.keys import Keys

from nmselect.errors import LaunchError
from nmselect.system import ConnectOutcome, Connected, Failed, NetworkEntry, NetworkList, NmcliClient
from nmselect.terminal import KeyReader, TerminalSurface


logger = logging.getLogger(__name__)

ENTER_KEYS = (Keys.ControlM, Keys.ControlJ)
# The listing header occupies row 1; entry i sits on row i + 2.
FIRST_ENTRY_ROW = 2
KEY_HINT = "↑/↓ move  Enter select  r refresh  q quit"
EMPTY_LIST_TEXT = "No networks found."


@dataclass
class Selection:
    index: int = 0

    def move_up(self) -> None:
        self.index = max(self.index - 1, 0)

    def move_down(self, length: int) -> None:
        if length <= 0:
            return
        self.index = min(self.index + 1, length - 1)

    def clamp(self, length: int) -> None:
        self.index = min(self.index, max(length - 1, 0))

    def current(self, networks: NetworkList) -> NetworkEntry:
        return networks[self.index]


@dataclass(frozen=True)
class Browsing:
    pass


@dataclass(frozen=True)
class EnteringPassword:
    ssid: str
    partial_password: str = ""

    def typed(self, char: str) -> "EnteringPassword":
        return replace(self, partial_password=self.partial_password + char)


@dataclass(frozen=True)
class Connecting:
    ssid: str
    password: str


@dataclass(frozen=True)
class Finished:
    ssid: str
    outcome: ConnectOutcome


@dataclass(frozen=True)
class Quit:
    pass


SessionState = Union[Browsing, EnteringPassword, Connecting, Finished, Quit]


def browse_screen(networks: NetworkList) -> str:
    if not networks:
        body = "\n".join(line for line in (networks.header, EMPTY_LIST_TEXT) if line)
    else:
        body = networks.text()
    return f"{body}\n\n{KEY_HINT}"


def password_screen(ssid: str) -> str:
    return f"CONNECTING\nSSID: {ssid}\nPassword: "


def outcome_screen(ssid: str, outcome: ConnectOutcome) -> str:
    if isinstance(outcome, Connected):
        text = f"You are connected to {ssid}\nCommand Output:\n{outcome.message}"
    else:
        text = f"Could not connect to {ssid}\n{outcome.diagnostic}"
    if not text.endswith("\n"):
        text += "\n"
    return text


class Controller:
    def __init__(self, surface: TerminalSurface, client: NmcliClient, keys: KeyReader) -> None:
        self.surface = surface
        self.client = client
        self.keys = keys
        self.networks = NetworkList(header="")
        self.selection = Selection()

    def run(self) -> SessionState:
        state: SessionState = Browsing()
        while True:
            logger.debug("Entering %s", type(state).__name__)
            if isinstance(state, Browsing):
                state = self._browse()
            elif isinstance(state, EnteringPassword):
                state = self._enter_password(state)
            elif isinstance(state, Connecting):
                state = self._connect(state)
            elif isinstance(state, Finished):
                self.surface.clear_and_render(outcome_screen(state.ssid, state.outcome))
                return state
            else:
                return state

    def refresh(self) -> None:
        self.networks = self.client.list_networks()
        self.selection.clamp(len(self.networks))
        self.surface.clear_and_render(browse_screen(self.networks))
        if self.networks:
            self.surface.place_marker(FIRST_ENTRY_ROW + self.selection.index)

    def _move(self, action: Callable[[], None]) -> None:
        previous = self.selection.index
        action()
        if self.selection.index == previous:
            return
        self.surface.place_marker(FIRST_ENTRY_ROW + previous, self.networks[previous].raw[:1] or " ")
        self.surface.place_marker(FIRST_ENTRY_ROW + self.selection.index)

    def _browse(self) -> SessionState:
        self.refresh()
        while True:
            key = self.keys.read_key().key
            if key == Keys.Up:
                self._move(self.selection.move_up)
            elif key == Keys.Down:
                self._move(lambda: self.selection.move_down(len(self.networks)))
            elif key == "r":
                self.refresh()
            elif key == "q":
                return Quit()
            elif key in ENTER_KEYS and self.networks:
                return EnteringPassword(ssid=self.selection.current(self.networks).ssid)

    def _enter_password(self, state: EnteringPassword) -> SessionState:
        self.surface.clear_and_render(password_screen(state.ssid))
        with self.surface.line_edit():
            while True:
                key = self.keys.read_key().key
                if key == Keys.Escape:
                    following = self.keys.peek()
                    # Alt+key and Alt+arrow arrive as Escape plus the key; a
                    # pressed Esc is followed by nothing or the line ending.
                    if following is None or following.key in ENTER_KEYS:
                        return Quit()
                    continue
                if key in ENTER_KEYS:
                    return Connecting(ssid=state.ssid, password=state.partial_password)
                if not isinstance(key, Keys) and key.isprintable():
                    state = state.typed(key)

    def _connect(self, state: Connecting) -> SessionState:
        try:
            outcome = self.client.connect(state.ssid, state.password)
        except LaunchError as exc:
            logger.warning("%s", exc)
            outcome = Failed(str(exc))
        return Finished(ssid=state.ssid, outcome=outcome)
