import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.highlighter import ReprHighlighter
from rich.logging import RichHandler
from rich.text import Text

from fatiguecal.config import LOGGING, PATHS

SESSION_START_BANNER = "―" * 20 + " NEW CALIBRATION SESSION " + "―" * 20

ROOT_LOG_FILENAME = "fatiguecal.log"


def _remove_handlers(logger: logging.Logger, *, predicate) -> None:
    """Remove and close all handlers on `logger` for which `predicate(handler)` is True."""
    for h in list(logger.handlers):
        if predicate(h):
            logger.removeHandler(h)
            h.close()


def _make_rotating_handler(path: Path, level: int, fmt: logging.Formatter) -> RotatingFileHandler:
    """Create a RotatingFileHandler writing to `path` at `level` with `fmt`."""
    fh = RotatingFileHandler(
        filename=str(path),
        maxBytes=LOGGING.max_bytes,
        backupCount=LOGGING.backup_count,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    return fh


def _console_handler_pred(h: logging.Handler) -> bool:
    return isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)


class BacktickPathHighlighter(ReprHighlighter):
    """Highlight paths written between backticks, e.g. "wrote `results/x.json`"."""

    _DELIM = re.compile(r"`(?P<body>[^`]+)`")
    _PATH = re.compile(r"^(?:~|/|\.|[A-Za-z]:\\)?[\w.\- /\\]+$")

    def highlight(self, text: Text) -> None:
        super().highlight(text)

        s = text.plain
        for m in self._DELIM.finditer(s):
            body = m.group("body").strip()
            if self._PATH.match(body):
                text.stylize("repr.path", m.start("body"), m.end("body"))


class _DropFileOnlyOnConsole(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return not getattr(record, "file_only", False)


def _make_console_handler(level: int, fmt: logging.Formatter) -> RichHandler:
    console_h = RichHandler(level=level, highlighter=BacktickPathHighlighter())
    console_h.setFormatter(fmt)
    console_h.addFilter(_DropFileOnlyOnConsole())
    return console_h


def enable_logging_handlers(
    file_level: int | None = None,
    console_level: int | None = None,
    pkg_console_levels: dict[str, int] | None = None,
    logs_dir: Optional[Path] = None,
    log_to_file: bool = True,
) -> Optional[Path]:
    """Attach a Rich console handler, and optionally a rotating file handler, to the root logger.

    Levels default to those in `logging.yml`. Returns the path of the log file,
    or `None` when file logging is disabled.
    """
    file_lvl: int = file_level or LOGGING.file_level
    console_lvl: int = console_level or LOGGING.console_level
    pkg_console_lvls = pkg_console_levels or dict(getattr(LOGGING, "pkg_console_levels", None) or {})
    console_fmt = logging.Formatter(LOGGING.console_format_str)
    file_fmt = logging.Formatter(LOGGING.file_format_str)

    root = logging.getLogger()
    root.setLevel(min(file_lvl, console_lvl) if log_to_file else console_lvl)

    # Console
    _remove_handlers(root, predicate=_console_handler_pred)
    root.addHandler(_make_console_handler(console_lvl, console_fmt))

    # Per-package level floors, e.g. to silence jax's compilation chatter
    for pkg, lvl in pkg_console_lvls.items():
        lg = logging.getLogger(pkg)
        lg.setLevel(lvl)
        lg.propagate = True

    if not log_to_file:
        return None

    logs_dir = Path(logs_dir if logs_dir is not None else PATHS.logs).resolve()
    logs_dir.mkdir(parents=True, exist_ok=True)
    root_log = logs_dir / ROOT_LOG_FILENAME

    _remove_handlers(root, predicate=lambda h: isinstance(h, RotatingFileHandler))
    root.addHandler(_make_rotating_handler(root_log, file_lvl, file_fmt))
    root.info(SESSION_START_BANNER, extra={"file_only": True})
    root.debug("File logging enabled → `%s`", root_log)

    logging.captureWarnings(True)
    return root_log
