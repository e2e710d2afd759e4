"""Tests for screen adapters and the adapter factory."""

import subprocess
from unittest.mock import MagicMock

import pytest

from chorelock.adapters.log_screen import LoggingScreen
from chorelock.adapters.macos_screen import MacScreen
from chorelock.adapters.screen_factory import create_screen_adapter


class TestLoggingScreen:
    def test_tracks_state(self):
        screen = LoggingScreen()
        assert screen.locked is None
        screen.lock()
        assert screen.locked is True
        screen.unlock()
        assert screen.locked is False

    def test_redundant_calls_are_tolerated(self):
        screen = LoggingScreen()
        screen.lock()
        screen.lock()
        assert screen.locked is True
        assert screen.calls == ["lock", "lock"]


class TestMacScreen:
    def test_lock_runs_osascript(self):
        run = MagicMock()
        screen = MacScreen(run=run, is_locked=lambda: False)
        screen.lock()
        args = run.call_args[0][0]
        assert args[0] == "/usr/bin/osascript"
        assert run.call_args[1]["check"] is True

    def test_lock_skipped_while_session_is_locked(self):
        run = MagicMock()
        screen = MacScreen(run=run, is_locked=lambda: True)
        screen.lock()
        run.assert_not_called()

    def test_relocks_after_user_logs_back_in(self):
        run = MagicMock()
        session = {"locked": False}
        screen = MacScreen(run=run, is_locked=lambda: session["locked"])
        screen.lock()
        session["locked"] = True
        screen.lock()
        assert run.call_count == 1
        # User typed their OS password during the window
        session["locked"] = False
        screen.lock()
        assert run.call_count == 2

    def test_unreadable_session_state_still_locks(self):
        run = MagicMock()
        screen = MacScreen(run=run, is_locked=MagicMock(side_effect=RuntimeError("no Quartz")))
        screen.lock()
        assert run.call_count == 1

    def test_falls_back_to_cgsession(self):
        run = MagicMock(side_effect=[subprocess.CalledProcessError(1, "osascript"), None])
        screen = MacScreen(run=run, is_locked=lambda: False)
        screen.lock()
        assert run.call_count == 2
        assert run.call_args[0][0][-1] == "-suspend"

    def test_both_methods_fail_does_not_raise(self):
        run = MagicMock(side_effect=OSError("no such file"))
        screen = MacScreen(run=run, is_locked=lambda: False)
        screen.lock()
        assert run.call_count == 2

    def test_unlock_runs_nothing(self):
        run = MagicMock()
        MacScreen(run=run, is_locked=lambda: False).unlock()
        run.assert_not_called()


class TestScreenFactory:
    def test_log_backend(self):
        assert isinstance(create_screen_adapter("log"), LoggingScreen)

    def test_macos_backend_case_insensitive(self):
        assert isinstance(create_screen_adapter("MacOS"), MacScreen)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown SCREEN_BACKEND"):
            create_screen_adapter("windows")

    def test_defaults_to_settings(self):
        # conftest sets SCREEN_BACKEND=log
        assert isinstance(create_screen_adapter(), LoggingScreen)
