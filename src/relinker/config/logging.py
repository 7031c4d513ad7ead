"""Logging setup for the relinker CLI."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with a terse CLI format.

    ``force=True`` replaces handlers installed earlier, which tests and the
    ``--verbose`` flag rely on.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    # httpx logs every request at INFO; keep the reconciliation log readable
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
