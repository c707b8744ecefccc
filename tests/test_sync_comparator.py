"""Tests for status classification."""

import pytest

from modsync.models import ModStatus
from modsync.sync.comparator import classify_status


class TestClassifyStatus:
    """Tests for classify_status precedence."""

    @pytest.mark.parametrize(
        "branch,behind,ahead,local,expected",
        [
            ("main", 0, 0, False, ModStatus.UP_TO_DATE),
            ("main", 3, 0, False, ModStatus.BEHIND),
            ("main", 0, 2, False, ModStatus.AHEAD),
            ("main", 3, 2, False, ModStatus.DIVERGED),
            ("main", 0, 0, True, ModStatus.LOCAL_CHANGES),
        ],
    )
    def test_table(self, branch, behind, ahead, local, expected):
        assert classify_status(branch, behind, ahead, local) == expected

    def test_detached_head_is_unknown(self):
        """Detached HEAD wins over everything else."""
        assert classify_status(None, 5, 5, True) == ModStatus.UNKNOWN

    def test_local_changes_beat_behind(self):
        """Local modifications are reported even when commits are missing."""
        assert classify_status("main", 4, 0, True) == ModStatus.LOCAL_CHANGES

    def test_local_changes_beat_diverged(self):
        assert classify_status("main", 1, 1, True) == ModStatus.LOCAL_CHANGES
