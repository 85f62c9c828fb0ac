from __future__ import annotations

from pathlib import Path

import logging
import sys

import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from expressface.utils import log


@pytest.fixture
def restore_root_level():
    root = logging.getLogger()
    level = root.level
    yield root
    root.setLevel(level)


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, logging.INFO),
        ("", logging.INFO),
        ("debug", logging.DEBUG),
        (" WARNING ", logging.WARNING),
        ("15", 15),
        (logging.ERROR, logging.ERROR),
        ("chatty", logging.INFO),
    ],
)
def test_level_parsing(value, expected):
    assert log._level_from(value) == expected


def test_set_level_changes_root(restore_root_level):
    assert log.set_level("warning") == logging.WARNING
    assert restore_root_level.level == logging.WARNING
    assert not log.get_logger("expressface.test").isEnabledFor(logging.INFO)

    log.set_level("debug")
    assert log.get_logger("expressface.test").isEnabledFor(logging.DEBUG)
