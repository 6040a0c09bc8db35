from __future__ import annotations

import logging
import sys

from nmselect.errors import CommandError, NmselectError, TerminalError
from nmselect.session import Controller
from nmselect.system import NmcliClient
from nmselect.terminal import KeyReader, TerminalSurface


logger = logging.getLogger("nmselect")


def run_session(surface: TerminalSurface, client: NmcliClient, keys: KeyReader) -> int:
    with surface.session():
        try:
            state = Controller(surface, client, keys).run()
        except TerminalError:
            raise
        except CommandError as exc:
            logger.warning("%s", exc)
            surface.clear_and_render(f"{exc}\n")
            return 0
        except NmselectError as exc:
            logger.exception("Fatal error")
            surface.clear_and_render(f"{exc}\n")
            return 1
    logger.info("Session ended in %s", type(state).__name__)
    return 0


def main() -> int:
    surface = TerminalSurface.create()
    try:
        return run_session(surface, NmcliClient(), KeyReader(surface.input))
    except TerminalError as exc:
        logger.exception("Terminal failure")
        print(f"nmselect: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
