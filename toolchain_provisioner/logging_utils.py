from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

DEFAULT_LOG_PATH = "logs/toolchain-provisioner.log"
FALLBACK_LOG_NAME = "toolchain-provisioner.log"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured_path: Optional[str] = None
_configured = False


def configure_logging(
    log_path: Optional[str] = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> Optional[str]:
    """Set up the root logger for a provisioning run.

    Every ``CMD <argv>`` line, step start and state transition of a run lands
    in log_path, so a failed environment can be diagnosed after it has been
    discarded. When log_path cannot be created the log is written to
    ``toolchain-provisioner.log`` in the working directory. Console output
    goes to stderr; stdout carries only results and rendered Dockerfiles.

    Later calls only adjust the level. Returns the log file in use, or None
    when file logging is off.
    """
    global _configured, _configured_path

    root = logging.getLogger()
    root.setLevel(level)
    if _configured:
        return _configured_path

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    handlers: list[logging.Handler] = []

    chosen_path = log_path
    if log_path:
        try:
            Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
            file_handler: logging.Handler = logging.FileHandler(log_path)
        except OSError:
            chosen_path = str(Path.cwd() / FALLBACK_LOG_NAME)
            file_handler = logging.FileHandler(chosen_path)
        handlers.append(file_handler)

    if also_console:
        handlers.append(logging.StreamHandler())

    for h in handlers:
        h.setFormatter(fmt)
        root.addHandler(h)

    _configured, _configured_path = True, chosen_path
    logging.getLogger(__name__).info("Logging to %s (requested %s)", chosen_path, log_path)
    return chosen_path
