#!/usr/bin/env python

"""Logger for embird to STDERR and optionally also to a LOGFILE.

logging to STDERR
-----------------
DEBUG: used by developers to examine extra details.
INFO: info reported to users, per library and file-pair. (DEFAULT)
WARNING: data anomalies (empty samples, candidate count mismatches).
ERROR: configuration and resource errors, printed with raised errors.

logging to LOGFILE
------------------
Same levels as above, written without color.

structured run log
------------------
During `Demux.run` every record is also written as one JSON object
per line to `{outpath}/embird_run.jsonl`. Records emitted while a
library, file-pair, or sample is being processed carry these names in
their `extra` dict.

Examples
--------
>>> import embird
>>> embird.set_log_level("DEBUG")
>>> embird.set_log_level("DEBUG", log_file="/tmp/embird-log.txt")
"""

from typing import Optional, Iterator, List
import sys
from pathlib import Path
from contextlib import contextmanager
from loguru import logger

LOGGERS = [0]
CONTEXT = ("library", "file_pair", "sample")


def formatter(record):
    """Custom formatter shared by the stderr and file sinks.

    Records bound to a library, file-pair, or sample are prefixed
    with these names, e.g., [LIB1:LIB1_001:S01].
    """
    keys = [i for i in CONTEXT if record["extra"].get(i)]
    context = ":".join(f"{{extra[{i}]}}" for i in keys)
    return (
        "{time:HH:mm:ss} | "
        "<level>{level:<8}</level> <white>|</white> "
        "<magenta>{module:<13}</magenta> <white>|</white> "
        + (f"<cyan>[{context}]</cyan> " if keys else "")
        + "{message}\n"
    )


def _is_embird(record) -> bool:
    return record["extra"].get("name") == "embird"


def color_support():
    """Check for color support in stderr as a terminal/tty."""
    return sys.stderr.isatty()


def set_log_level(log_level: str = "DEBUG", log_file: Optional[Path] = None):
    """Add logger for embird to stderr and optionally to file.

    These loggers are bound to the 'extra' keyword 'embird'. Thus, any
    module that aims to use this formatted logger should put
    `logger = logger.bind(name="embird")` at the top of the module.

    The logger will use EITHER a STDERR or a LOGFILE, but not both.
    """
    # remove any previous loggers created by embird
    for idx in LOGGERS:
        try:
            logger.remove(idx)
        except ValueError:
            pass

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(exist_ok=True, parents=True)
        log_file.touch(exist_ok=True)
        idx = logger.add(
            sink=log_file,
            level=log_level,
            colorize=False,
            format=formatter,
            filter=_is_embird,
            enqueue=True,
            rotation="50 MB",
        )
    else:
        idx = logger.add(
            sink=sys.stderr,
            level=log_level,
            colorize=color_support(),
            format=formatter,
            filter=_is_embird,
            enqueue=True,
        )
    LOGGERS.append(idx)

    # activate
    logger.enable("embird")
    logger.bind(name="embird").debug(f"embird logging enabled: {log_level}")


@contextmanager
def run_log_sink(path: Path, log_level: str = "DEBUG") -> Iterator[Path]:
    """Write serialized (JSON lines) records to path while active."""
    idx = logger.add(
        sink=path,
        level=log_level,
        serialize=True,
        filter=_is_embird,
        enqueue=False,
    )
    try:
        yield path
    finally:
        logger.remove(idx)


@contextmanager
def capture_logs(log_level: str = "INFO") -> Iterator[List[str]]:
    """Collect formatted embird messages in a list, e.g., for tests.

    Messages are formatted as LEVEL:module:message.

    >>> with capture_logs("WARNING") as cap:
    >>>     tool.run()
    >>> assert any("has 0 reads" in i for i in cap)
    """
    messages = []
    idx = logger.add(
        sink=messages.append,
        level=log_level,
        format="{level}:{name}:{message}",
        filter=_is_embird,
        colorize=False,
    )
    try:
        yield messages
    finally:
        logger.remove(idx)
