"""Logging setup.

The root level comes from `EXPRESSFACE_LOG_LEVEL` (a level name such as
DEBUG or WARNING); `set_level` changes it at runtime.
"""

import logging
import os

from contextlib import contextmanager

LOG_LEVEL_ENV = "EXPRESSFACE_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _level_from(value, default=logging.INFO):
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    return level if isinstance(level, int) else default


logging.basicConfig(level=_level_from(os.environ.get(LOG_LEVEL_ENV)), format=LOG_FORMAT)


def set_level(level):
    """Set the root logging level; unknown names fall back to INFO."""
    resolved = _level_from(level)
    logging.getLogger().setLevel(resolved)
    return resolved


def get_logger(name):
    return logging.getLogger(name)


@contextmanager
def suppress_fds():
    """Redirect FD 1 and 2 to /dev/null for the duration of the block.

    ONNX runtime and the model zoo print from native code, past sys.stdout.
    """
    devnull = os.open(os.devnull, os.O_RDWR)
    saved = (os.dup(1), os.dup(2))
    try:
        os.dup2(devnull, 1)
        os.dup2(devnull, 2)
        yield
    finally:
        for fd, old in zip((1, 2), saved):
            os.dup2(old, fd)
            os.close(old)
        os.close(devnull)
