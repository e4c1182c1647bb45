"""
Shared helpers for PetWorld: build timing, atomic output files and
log setup from a :class:`~petworld.config.LoggingConfig`.
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from petworld.config import LoggingConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Timer:
    """Time a block and log how long it took.

    >>> with Timer("assembly '1' of model 0", logger=log) as t:
    ...     units = replicate()
    >>> t.elapsed
    0.004
    """

    def __init__(
        self,
        name: str,
        logger: logging.Logger | None = None,
        level: int = logging.DEBUG,
    ) -> None:
        self.name = name
        self.level = level
        self._logger = logger or globals()["logger"]
        self._started: float | None = None
        self.elapsed: float = 0.0

    def __enter__(self) -> Timer:
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, *args: Any) -> None:
        self.elapsed = time.perf_counter() - self._started
        # Failed blocks are reported by whoever handles the exception
        if exc_type is None:
            self._logger.log(self.level, "%s took %.3fs", self.name, self.elapsed)


@contextmanager
def atomic_write(filepath: str | Path, encoding: str = "utf-8") -> Generator[TextIO, None, None]:
    """Open a text file that only appears at ``filepath`` once fully written.

    Parent directories are created. Output goes to a hidden temporary file in
    the same directory, which replaces the target when the block exits
    cleanly and is removed otherwise.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(dir=filepath.parent, prefix=f".{filepath.name}.", suffix=".tmp")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            yield f
        os.replace(temp_path, filepath)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def setup_logging(
    config: LoggingConfig,
    verbose: bool = False,
    name: str = "petworld",
) -> logging.Logger:
    """Send the ``petworld`` loggers to stderr and, if configured, a log file.

    Args:
        config: Log level and optional log file
        verbose: Log at DEBUG regardless of ``config.level``
        name: Logger to configure

    Returns:
        The configured logger. Handlers from an earlier call are replaced.
    """
    level = logging.DEBUG if verbose else getattr(logging, config.level)

    log = logging.getLogger(name)
    log.setLevel(level)
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        log.addHandler(handler)
    return log


__all__ = ["Timer", "atomic_write", "setup_logging", "LOG_FORMAT"]
