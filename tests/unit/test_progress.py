from __future__ import annotations

from unittest.mock import Mock, patch

from catalog_import.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:

    def test_init_with_tty_enabled(self):
        with patch('catalog_import.services.progress.is_tty_enabled', return_value=True), \
             patch('catalog_import.services.progress.tqdm') as mock_tqdm:

            tracker = ProgressTracker(5, description="Committing sale")

            assert tracker.total == 5
            assert tracker.description == "Committing sale"
            assert tracker.done == 0
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Committing sale",
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('catalog_import.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(5)
            assert tracker.enabled is False
            assert tracker.pbar is None
            assert tracker.description == "Committing"

    def test_advance_with_tty_enabled(self):
        mock_pbar = Mock()
        with patch('catalog_import.services.progress.is_tty_enabled', return_value=True), \
             patch('catalog_import.services.progress.tqdm', return_value=mock_pbar):
            tracker = ProgressTracker(3)
            tracker.advance()
            tracker.advance(2)
            assert tracker.done == 3
            assert mock_pbar.update.call_count == 2
            mock_pbar.update.assert_called_with(2)

    def test_advance_with_tty_disabled(self):
        with patch('catalog_import.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(3)
            tracker.advance()
            assert tracker.done == 1

    def test_context_manager_closes_once(self):
        mock_pbar = Mock()
        with patch('catalog_import.services.progress.is_tty_enabled', return_value=True), \
             patch('catalog_import.services.progress.tqdm', return_value=mock_pbar):
            with ProgressTracker(1) as tracker:
                tracker.advance()
            tracker.close()
            mock_pbar.close.assert_called_once()
            assert tracker.pbar is None

    def test_close_with_tty_disabled(self):
        with patch('catalog_import.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(1)
            tracker.close()
            tracker.advance()
            assert tracker.done == 1
