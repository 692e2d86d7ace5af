"""
Tests for the tqdm progress adapter.
"""

from x1_rewards.progress import TqdmProgress


def test_bar_tracks_attempted_epochs():
    with TqdmProgress() as progress:
        progress(5, 12)
        progress(10, 12)
        assert progress._bar.total == 12
        assert progress._bar.n == 10
        progress(12, 12)
        assert progress._bar.n == 12
    assert progress._bar is None


def test_close_without_updates():
    progress = TqdmProgress()
    progress.close()
    assert progress._bar is None
