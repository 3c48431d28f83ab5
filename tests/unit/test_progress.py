from __future__ import annotations

from unittest.mock import MagicMock, patch

from xrf_processor.models.normalization import NormalizationProgress, NormalizationStage
from xrf_processor.services.progress import ProgressTracker, StageProgressIndicator


def test_tracker_disabled_without_tty():
    """No bar is created when stdout is not a terminal."""
    with patch("xrf_processor.services.progress.is_tty_enabled", return_value=False), \
            patch("xrf_processor.services.progress.tqdm") as mock_tqdm:
        tracker = ProgressTracker()
        tracker(2, 5)
        tracker(5, 5)
        tracker.close()
    mock_tqdm.assert_not_called()
    assert tracker.processed == 5


def test_tracker_advances_by_delta_on_tty():
    bar = MagicMock()
    with patch("xrf_processor.services.progress.is_tty_enabled", return_value=True), \
            patch("xrf_processor.services.progress.tqdm", return_value=bar) as mock_tqdm:
        with ProgressTracker("units.xlsx") as tracker:
            tracker(0, 5)
            tracker(2, 5)
            tracker(4, 5)
            tracker(5, 5)
    mock_tqdm.assert_called_once()
    assert mock_tqdm.call_args.kwargs["total"] == 5
    assert mock_tqdm.call_args.kwargs["desc"] == "units.xlsx"
    assert [c.args[0] for c in bar.update.call_args_list] == [2, 2, 1]
    bar.close.assert_called_once()


def test_set_postfix_only_with_bar():
    bar = MagicMock()
    with patch("xrf_processor.services.progress.is_tty_enabled", return_value=True), \
            patch("xrf_processor.services.progress.tqdm", return_value=bar):
        tracker = ProgressTracker()
        tracker.set_postfix(valid=1)
        bar.set_postfix.assert_not_called()
        tracker(1, 2)
        tracker.set_postfix(valid=1)
    bar.set_postfix.assert_called_once_with(valid=1)


def test_stage_indicator_records_and_prints(capsys):
    with patch("xrf_processor.services.progress.is_tty_enabled", return_value=True):
        indicator = StageProgressIndicator("components")
    indicator(NormalizationProgress(NormalizationStage.CHECKING_CACHE, 0, 3, "Checking cache"))
    indicator(NormalizationProgress(NormalizationStage.COMPLETE, 3, 3, "Done"))
    assert indicator.stages == [NormalizationStage.CHECKING_CACHE, NormalizationStage.COMPLETE]
    out = capsys.readouterr().out
    assert "components: Checking cache (0/3)" in out


def test_stage_indicator_silent_without_tty(capsys):
    with patch("xrf_processor.services.progress.is_tty_enabled", return_value=False):
        indicator = StageProgressIndicator("substrates")
    indicator(NormalizationProgress(NormalizationStage.COMPLETE, 1, 1, "Done"))
    assert capsys.readouterr().out == ""
    assert indicator.stages == [NormalizationStage.COMPLETE]
