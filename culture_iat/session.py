from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .results import TrialResult

logger = logging.getLogger(__name__)

GENERIC_SAVE_ERROR = "Неизвестная ошибка при сохранении"


class SaveState(str, Enum):
    RUNNING = "running"
    SAVING = "saving"
    SAVE_FAILED = "save_failed"
    SAVE_SUCCEEDED = "save_succeeded"


@dataclass(frozen=True, slots=True)
class SessionInfo:
    participant_id: str
    seed: int
    started_at_utc: str
    app_version: str
    group: str | None = None


@dataclass(frozen=True, slots=True)
class SaveOutcome:
    success: bool
    error_message: str | None = None

    @classmethod
    def ok(cls) -> "SaveOutcome":
        return cls(success=True)

    @classmethod
    def failed(cls, message: str | None) -> "SaveOutcome":
        return cls(success=False, error_message=message)


class ResultSaver(Protocol):
    def save(self, session: SessionInfo, results: tuple[TrialResult, ...]) -> SaveOutcome:
        """Persist one finished session. Called once per finish()."""
        ...


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    state: SaveState
    error_message: str | None
    result_count: int


class SessionController:
    """Hands the finished result set to the saver and tracks the outcome.

    The save runs once on a worker; there is no automatic retry. Call
    ``update()`` from the frame loop (or ``wait()``) to pick up the outcome.
    """

    def __init__(
        self,
        *,
        session: SessionInfo,
        saver: ResultSaver,
        executor: Executor | None = None,
    ) -> None:
        self._session = session
        self._saver = saver
        self._owns_executor = executor is None
        self._executor: Executor = executor if executor is not None else ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="iat-save"
        )

        self._state = SaveState.RUNNING
        self._results: tuple[TrialResult, ...] = ()
        self._pending: Future[SaveOutcome] | None = None
        self._error_message: str | None = None

    @property
    def session(self) -> SessionInfo:
        return self._session

    @property
    def state(self) -> SaveState:
        return self._state

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def results(self) -> tuple[TrialResult, ...]:
        return self._results

    def finish(self, results: tuple[TrialResult, ...]) -> bool:
        """Start saving the final results. Only valid once, from RUNNING."""

        if self._state is not SaveState.RUNNING:
            return False
        self._results = tuple(results)
        self._state = SaveState.SAVING
        logger.info(
            "saving %d results for participant %s", len(self._results), self._session.participant_id
        )
        self._pending = self._executor.submit(self._run_save, self._results)
        return True

    def update(self) -> None:
        if self._pending is None or not self._pending.done():
            return
        self._resolve(self._pending.result())

    def wait(self, timeout: float | None = None) -> SaveState:
        if self._pending is not None:
            try:
                outcome = self._pending.result(timeout=timeout)
            except FutureTimeoutError:
                return self._state
            self._resolve(outcome)
        return self._state

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            error_message=self._error_message,
            result_count=len(self._results),
        )

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def _run_save(self, results: tuple[TrialResult, ...]) -> SaveOutcome:
        try:
            return self._saver.save(self._session, results)
        except Exception as exc:
            logger.exception("result saver raised")
            return SaveOutcome.failed(str(exc) or None)

    def _resolve(self, outcome: SaveOutcome) -> None:
        self._pending = None
        if outcome.success:
            self._state = SaveState.SAVE_SUCCEEDED
            self._error_message = None
            logger.info("results saved")
            return
        message = (outcome.error_message or "").strip() or GENERIC_SAVE_ERROR
        self._state = SaveState.SAVE_FAILED
        self._error_message = message
        logger.warning("saving results failed: %s", message)
