from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from .blocks import BlockSpec, Side, category_label, validate_blocks
from .clock import Clock, WallClock
from .results import ResultRecorder, TrialResult
from .stimuli import StimulusDescriptor, StimulusPool

logger = logging.getLogger(__name__)


class TrialPhase(str, Enum):
    AWAITING_START = "awaiting_start"
    PRESENTING = "presenting"
    FINISHED = "finished"


class Action(str, Enum):
    START = "start"
    LEFT = "left"
    RIGHT = "right"


FinishedCallback = Callable[[tuple[TrialResult, ...]], object]


@dataclass(frozen=True, slots=True)
class IatSnapshot:
    """View model for the UI (pure data)."""

    phase: TrialPhase
    title: str
    instruction: str
    block_number: int  # 1-based
    block_count: int
    trial_number: int  # 1-based while presenting, 0 before the first trial
    trial_total: int
    left_labels: tuple[str, ...]
    right_labels: tuple[str, ...]
    stimulus: StimulusDescriptor | None
    has_mistake: bool


class IatEngine:
    """Block/trial state machine for the Implicit Association Test.

    awaiting_start -> presenting -> ... -> awaiting_start (next block) -> ... -> finished

    - A wrong side marks the trial as a mistake; the trial stays open and its
      timer keeps running until the correct side is pressed.
    - Time is entirely via injected clocks.
    - Every call runs to completion; no input is queued.
    """

    def __init__(
        self,
        *,
        blocks: Sequence[BlockSpec],
        pool: StimulusPool,
        clock: Clock,
        wall_clock: WallClock,
        recorder: ResultRecorder | None = None,
        on_finished: FinishedCallback | None = None,
    ) -> None:
        validate_blocks(blocks, pool=pool)

        self._blocks = tuple(blocks)
        self._pool = pool
        self._clock = clock
        self._wall_clock = wall_clock
        self._recorder = recorder if recorder is not None else ResultRecorder()
        self._on_finished = on_finished

        self._phase = TrialPhase.AWAITING_START
        self._block_index = 0
        self._trial_count = 0
        self._current: StimulusDescriptor | None = None
        self._presented_at_s: float | None = None
        self._has_mistake = False
        self._mistakes = 0

    @property
    def phase(self) -> TrialPhase:
        return self._phase

    @property
    def block(self) -> BlockSpec:
        return self._blocks[self._block_index]

    @property
    def block_index(self) -> int:
        return self._block_index

    @property
    def block_count(self) -> int:
        return len(self._blocks)

    @property
    def trial_count(self) -> int:
        return self._trial_count

    @property
    def current_stimulus(self) -> StimulusDescriptor | None:
        return self._current

    @property
    def has_mistake(self) -> bool:
        return self._has_mistake

    def results(self) -> tuple[TrialResult, ...]:
        return self._recorder.snapshot()

    def can_exit(self) -> bool:
        # A live trial must be resolved before leaving.
        return self._phase is not TrialPhase.PRESENTING

    def handle_action(self, action: Action) -> bool:
        """Dispatch an abstract input action. Returns True if it was accepted."""

        if action is Action.START:
            return self.start()
        if action is Action.LEFT:
            return self.submit_response(Side.LEFT)
        if action is Action.RIGHT:
            return self.submit_response(Side.RIGHT)
        return False

    def start(self) -> bool:
        if self._phase is not TrialPhase.AWAITING_START:
            return False
        logger.info("block %d started", self.block.block_id)
        self._advance()
        return True

    def submit_response(self, side: Side | str) -> bool:
        side = Side(side)
        if self._phase is not TrialPhase.PRESENTING or self._current is None:
            return False
        assert self._presented_at_s is not None

        blk = self.block
        if side != blk.correct_side(self._current.category):
            self._has_mistake = True
            self._mistakes += 1
            return True

        reaction_time_ms = max(0.0, (self._clock.now() - self._presented_at_s) * 1000.0)
        result = TrialResult(
            block_id=blk.block_id,
            trial_index=self._trial_count,
            stimulus_id=self._current.stimulus_id,
            category=str(self._current.category),
            is_correct=not self._has_mistake,
            mistakes=self._mistakes,
            reaction_time_ms=reaction_time_ms,
            timestamp_ms=int(self._wall_clock.epoch_ms()),
        )
        # Record before advancing so the final handoff includes this trial.
        self._recorder.append(result)
        logger.debug(
            "block %d trial %d: %s correct=%s rt=%.1fms",
            result.block_id,
            result.trial_index,
            result.stimulus_id,
            result.is_correct,
            result.reaction_time_ms,
        )
        self._advance()
        return True

    def snapshot(self) -> IatSnapshot:
        blk = self.block
        return IatSnapshot(
            phase=self._phase,
            title=blk.title,
            instruction=blk.instruction,
            block_number=self._block_index + 1,
            block_count=len(self._blocks),
            trial_number=self._trial_count,
            trial_total=blk.trial_count,
            left_labels=tuple(category_label(c) for c in blk.left_categories),
            right_labels=tuple(category_label(c) for c in blk.right_categories),
            stimulus=self._current,
            has_mistake=self._has_mistake,
        )

    def _advance(self) -> None:
        blk = self.block
        if self._trial_count >= blk.trial_count:
            self._current = None
            self._presented_at_s = None
            self._has_mistake = False
            if self._block_index >= len(self._blocks) - 1:
                self._finish()
                return
            self._block_index += 1
            self._trial_count = 0
            self._phase = TrialPhase.AWAITING_START
            logger.info("block %d complete, awaiting block %d", blk.block_id, self.block.block_id)
            return

        self._current = self._pool.pick(blk.categories)
        self._has_mistake = False
        self._mistakes = 0
        self._presented_at_s = self._clock.now()
        self._trial_count += 1
        self._phase = TrialPhase.PRESENTING

    def _finish(self) -> None:
        self._phase = TrialPhase.FINISHED
        results = self._recorder.snapshot()
        logger.info("test finished with %d trial results", len(results))
        if self._on_finished is not None:
            self._on_finished(results)
