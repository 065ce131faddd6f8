# app/core/singleton.py

import logging
import os
import signal
from pathlib import Path

logger = logging.getLogger(__name__)


def manage_process_pid(pid_file: str, pid: int = None):
    """Terminates the instance recorded in ``pid_file`` and records this one.

    Returns the previous PID found in the file, if any. Failures are logged,
    never raised.
    """
    if not pid_file:
        return None

    pid = pid or os.getpid()
    path = Path(pid_file)
    previous_pid = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            content = path.read_text(encoding="utf-8").strip()
            if content.isdigit():
                previous_pid = int(content)
                if previous_pid != pid:
                    try:
                        os.kill(previous_pid, signal.SIGTERM)
                        logger.warning("Previous process (PID: %s) terminated.", previous_pid)
                    except ProcessLookupError:
                        logger.info("Previous process not found (PID: %s).", previous_pid)
        path.write_text(str(pid), encoding="utf-8")
    except OSError as e:
        logger.error("Error managing the PID file %s: %s", pid_file, e)
    return previous_pid
