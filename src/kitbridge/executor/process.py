"""POSIX process-group signalling helpers."""

from __future__ import annotations

import logging
import os
import signal
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


def kill_process_group(pgid: int, sig: int) -> bool:
    """Send *sig* to every process in group *pgid*.

    Returns ``True`` if the signal was delivered.  A group that no longer
    exists, or one we may not signal, is logged and reported as ``False``.
    """
    try:
        os.killpg(pgid, sig)
    except ProcessLookupError:
        logger.debug("Process group %d already gone (signal %d)", pgid, sig)
        return False
    except PermissionError:
        logger.warning("Permission denied signalling process group %d", pgid)
        return False
    return True


def process_group_alive(pgid: int) -> bool:
    """Check whether any process in group *pgid* still exists."""
    try:
        os.killpg(pgid, 0)  # Signal 0 = check existence
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # Group exists but we can't signal it


def terminate_process_group(
    pgid: int,
    grace: float = 0.25,
    poll_interval: float = 0.05,
    reap: Callable[[], object] | None = None,
) -> bool:
    """Terminate group *pgid*: SIGTERM, wait up to *grace* seconds, then SIGKILL.

    Returns ``True`` if the group exited within the grace period and
    ``False`` if SIGKILL was needed (or the group was gone to begin with).
    *reap* runs before every liveness check so an exited leader that is
    still a zombie does not keep the group looking alive.
    """
    if not kill_process_group(pgid, signal.SIGTERM):
        return False
    return await_group_exit(pgid, grace, poll_interval, reap)


def await_group_exit(
    pgid: int,
    grace: float = 0.25,
    poll_interval: float = 0.05,
    reap: Callable[[], object] | None = None,
) -> bool:
    """Wait up to *grace* seconds for group *pgid* to exit, then SIGKILL it.

    Returns ``True`` if the group exited on its own.
    """
    deadline = time.monotonic() + grace
    while time.monotonic() < deadline:
        if reap is not None:
            reap()
        if not process_group_alive(pgid):
            logger.debug("Process group %d exited within grace period", pgid)
            return True
        time.sleep(poll_interval)

    logger.debug(
        "Process group %d still alive after %.0fms, sending SIGKILL",
        pgid,
        grace * 1000,
    )
    kill_process_group(pgid, signal.SIGKILL)
    return False
