"""
Logging setup for command-line runs.

Everything under the ``floater`` namespace goes to stdout and, optionally, to
a log file. The simulator logs still-water fallback and degenerate probe
layouts at DEBUG on every tick, so ``module_levels`` lets a run turn the
``floater.sim`` loggers up or down independently of the package level.
"""
import logging
import sys
from pathlib import Path
from typing import Mapping, Optional, Union

PACKAGE_LOGGER = "floater"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

Level = Union[int, str]


def _as_level(level: Level) -> int:
    if isinstance(level, str):
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level '{level}'")
        return value
    return int(level)


def setup_logging(
    level: Level = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    module_levels: Optional[Mapping[str, Level]] = None,
) -> logging.Logger:
    """
    (Re)configure the ``floater`` logger and return it.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: package level, as a number or a name such as "DEBUG".
        log_file: optional file receiving the same records as stdout.
        module_levels: per-logger overrides, e.g. {"floater.sim": "DEBUG"}.
    """
    package = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package.handlers):
        package.removeHandler(handler)
        handler.close()

    package_level = _as_level(level)
    overrides = {name: _as_level(lvl) for name, lvl in (module_levels or {}).items()}
    # Handlers must let through whatever the most verbose logger emits.
    handler_level = min([package_level, *overrides.values()])
    package.setLevel(package_level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(Path(log_file), mode="w", encoding="utf-8"))
    for handler in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)
        package.addHandler(handler)

    for name, lvl in overrides.items():
        logging.getLogger(name).setLevel(lvl)

    package.debug("Logging configured (level=%s, file=%s)", logging.getLevelName(package_level), log_file)
    return package
