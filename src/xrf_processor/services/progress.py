from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from xrf_processor.models.normalization import NormalizationProgress, NormalizationStage

"""Progress display with tqdm (TTY only).

Row parsing gets a tqdm bar fed from the parser's chunk-boundary progress
callback; name normalization gets a plain one-line-per-stage indicator since
it only has a handful of stages. Both stay silent when stdout is not a TTY so
CI logs are not filled with control sequences.
"""

__all__ = [
    "ProgressTracker",
    "StageProgressIndicator",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """tqdm bar over the data rows of one file.

    Usable directly as the parser's ``on_progress(processed, total)`` callback.
    """

    def __init__(self, description: str = "Parsing rows", *, unit: str = "row") -> None:
        self.description = description
        self.unit = unit
        self.processed = 0
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None

    def _ensure_bar(self, total: int) -> None:
        if self.pbar is None:
            self.pbar = tqdm(
                total=total,
                desc=self.description,
                unit=self.unit,
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def __call__(self, processed: int, total: int) -> None:
        self.update_to(processed, total)

    def update_to(self, processed: int, total: int) -> None:
        """Advance the bar to an absolute position."""
        delta = processed - self.processed
        self.processed = processed
        if not self.enabled or delta <= 0:
            return
        self._ensure_bar(total)
        if self.pbar is not None:
            self.pbar.update(delta)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class StageProgressIndicator:
    """Prints normalization stages (``checking-cache`` ... ``complete``) on a TTY."""

    def __init__(self, label: str) -> None:
        self.label = label
        self.enabled = is_tty_enabled()
        self.stages: list[NormalizationStage] = []

    def __call__(self, progress: NormalizationProgress) -> None:
        self.stages.append(progress.stage)
        if self.enabled:
            print(f"  {self.label}: {progress.message} ({progress.processed}/{progress.total})")
