"""Logging utilities for the scheduled recorder.

This module configures ``structlog`` for structured logging.  Records are
rendered by structlog and handed to the standard ``logging`` module, which
writes them to stderr and, when a log file is configured, appends them to
that file as well.  Every recorder process (including resumed successors)
calls :func:`configure_logging` once at startup.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional

import structlog


def configure_logging(config, log_file: Optional[Path] = None) -> None:
    """Configures the logging system.

    Args:
        config: Configuration object providing ``log_level`` and ``log_file``.
        log_file: Optional file overriding ``config.log_file``; recorder
            processes pass the log file carried by their request.
    """
    log_level_name = str(getattr(config, "log_level", "INFO")).upper()
    target = log_file or getattr(config, "log_file", None)

    handlers = [logging.StreamHandler(sys.stderr)]
    if target:
        path = Path(target).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(
        level=log_level_name,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO", utc=False),
    ]
    if sys.stderr.isatty():
        # the log file is shared with resumed processes; keep it free of ANSI codes
        processors.append(structlog.dev.ConsoleRenderer(colors=not target))
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(log_level_name)),
        cache_logger_on_first_use=True,
    )


def install_excepthooks() -> None:
    """Routes uncaught exceptions from any thread to the critical log."""
    log = structlog.get_logger("iptvrec.uncaught")

    def _main_hook(exc_type, exc, tb):
        log.critical("uncaught exception", thread="MainThread",
                     exc_info=(exc_type, exc, tb))

    def _thread_hook(args):
        if args.exc_type is SystemExit:
            return
        log.critical("uncaught exception",
                     thread=args.thread.name if args.thread else "?",
                     exc_info=(args.exc_type, args.exc_value, args.exc_traceback))

    sys.excepthook = _main_hook
    threading.excepthook = _thread_hook
