import logging

import pytest

from finflow.config import Settings
from finflow.logging_config import resolve_level


def test_configured_level_is_used_by_default():
    assert resolve_level(Settings(log_level="warning")) == logging.WARNING


def test_override_wins_over_configured_level():
    assert resolve_level(Settings(log_level="WARNING"), "debug") == logging.DEBUG


def test_unknown_level_is_rejected():
    with pytest.raises(ValueError):
        resolve_level(Settings(log_level="LOUD"))
