from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TrialResult:
    """One correctly-resolved trial.

    ``is_correct`` is False when any wrong press preceded the correct one.
    ``reaction_time_ms`` runs from stimulus onset to the correct press;
    ``timestamp_ms`` is wall-clock capture time and carries no timing meaning.
    """

    block_id: int
    trial_index: int  # 1-based within the block
    stimulus_id: str
    category: str
    is_correct: bool
    mistakes: int
    reaction_time_ms: float
    timestamp_ms: int


class ResultRecorder:
    """Append-only, insertion-ordered result log."""

    def __init__(self) -> None:
        self._results: list[TrialResult] = []

    def append(self, result: TrialResult) -> None:
        self._results.append(result)

    def snapshot(self) -> tuple[TrialResult, ...]:
        return tuple(self._results)

    def for_block(self, block_id: int) -> tuple[TrialResult, ...]:
        return tuple(r for r in self._results if r.block_id == block_id)

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[TrialResult]:
        return iter(tuple(self._results))
