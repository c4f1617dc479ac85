"""Tests for logging setup."""

import logging
from converge.utils.logging import _level_from_env, get_logger, set_verbosity


class TestLogging:
    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("CONVERGE_LOG_LEVEL", "debug")
        assert _level_from_env(logging.INFO) == logging.DEBUG

    def test_unknown_level_falls_back(self, monkeypatch):
        monkeypatch.setenv("CONVERGE_LOG_LEVEL", "chatty")
        assert _level_from_env(logging.INFO) == logging.INFO

    def test_module_loggers_under_package(self):
        assert get_logger("executor.executor").name == "converge.executor.executor"

    def test_set_verbosity(self):
        root = logging.getLogger("converge")
        previous = root.level
        try:
            set_verbosity(True)
            assert root.level == logging.DEBUG
            set_verbosity(False)
            assert root.level == logging.WARNING
        finally:
            root.setLevel(previous)
