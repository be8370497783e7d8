"""Tests for the per-root history file."""

from unittest.mock import patch

import pytest

from transbatch.constants import HISTORY_FILE
from transbatch.errors import HistoryLockedError
from transbatch.history import LocalHistorySet


def _digest(i: int) -> str:
    return f"{i:064x}"


class TestLocalHistorySet:

    def test_missing_file_is_empty(self, tmp_path):
        history = LocalHistorySet.for_root(tmp_path).load()

        assert len(history) == 0
        assert history.path == tmp_path / HISTORY_FILE

    def test_flush_and_reload(self, tmp_path):
        history = LocalHistorySet.for_root(tmp_path)
        history.update([_digest(3), _digest(1), _digest(2)])
        assert history.pending == 3

        history.flush()

        assert history.pending == 0
        assert history.path.read_text().splitlines() == [_digest(1), _digest(2), _digest(3)]
        reloaded = LocalHistorySet.for_root(tmp_path).load()
        assert _digest(2) in reloaded
        assert list(reloaded) == [_digest(1), _digest(2), _digest(3)]

    def test_duplicate_adds_not_pending(self, tmp_path):
        history = LocalHistorySet.for_root(tmp_path)
        history.add(_digest(1))
        history.add(_digest(1))
        history.add("")

        assert len(history) == 1
        assert history.pending == 1

    def test_blank_lines_ignored(self, tmp_path):
        (tmp_path / HISTORY_FILE).write_text(f"{_digest(1)}\n\n  \n{_digest(2)}\n")

        history = LocalHistorySet.for_root(tmp_path).load()

        assert len(history) == 2

    def test_failed_flush_keeps_previous_file(self, tmp_path):
        """A crash during rewrite leaves the old file intact and no temp files."""
        history = LocalHistorySet.for_root(tmp_path)
        history.add(_digest(1))
        history.flush()

        history.add(_digest(2))
        with patch("transbatch.utils.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                history.flush()

        assert history.path.read_text() == f"{_digest(1)}\n"
        assert [p.name for p in tmp_path.iterdir()] == [HISTORY_FILE]
        # Still pending, so the next flush retries
        assert history.pending == 1

    def test_crash_loses_at_most_unflushed_entries(self, tmp_path):
        """Entries flushed in batches of 10 survive an abandoned process."""
        history = LocalHistorySet.for_root(tmp_path)
        for i in range(1, 24):
            history.add(_digest(i))
            if history.pending >= 10:
                history.flush()
        # Process "dies" here with 3 unflushed entries

        survived = LocalHistorySet.for_root(tmp_path).load()
        assert len(survived) == 20
        assert all(_digest(i) in survived for i in range(1, 21))


class TestHistoryLock:

    def test_second_owner_rejected(self, tmp_path):
        first = LocalHistorySet.for_root(tmp_path)
        second = LocalHistorySet.for_root(tmp_path)

        with first:
            with pytest.raises(HistoryLockedError):
                second.acquire()

        # Released on exit
        with second:
            pass

    def test_context_manager_loads(self, tmp_path):
        (tmp_path / HISTORY_FILE).write_text(f"{_digest(9)}\n")

        with LocalHistorySet.for_root(tmp_path) as history:
            assert _digest(9) in history

    def test_lock_file_location(self, tmp_path):
        history = LocalHistorySet.for_root(tmp_path)
        assert history.lock_path == tmp_path / f"{HISTORY_FILE}.lock"
