"""Mouse/touch and joystick input on the IAT screen, driven without a main loop."""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from concurrent.futures import Executor, Future
from dataclasses import dataclass

import pytest

# Use the dummy drivers before importing pygame or the application
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402

from culture_iat.app import WINDOW_SIZE, App, IatTestScreen, MenuScreen  # noqa: E402
from culture_iat.blocks import Side, block  # noqa: E402
from culture_iat.engine import IatEngine, TrialPhase  # noqa: E402
from culture_iat.results import TrialResult  # noqa: E402
from culture_iat.session import SaveOutcome, SaveState, SessionController, SessionInfo  # noqa: E402
from culture_iat.stimuli import Category, default_stimulus_pool  # noqa: E402

SESSION = SessionInfo(
    participant_id="p-ui",
    seed=3,
    started_at_utc="2026-01-01T00:00:00Z",
    app_version="test",
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


@dataclass
class FakeWallClock:
    ms: int = 1_700_000_000_000

    def epoch_ms(self) -> int:
        return self.ms


class InlineExecutor(Executor):
    def submit(self, fn, /, *args, **kwargs):
        fut: Future = Future()
        fut.set_result(fn(*args, **kwargs))
        return fut


class CountingApp(App):
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        super().__init__(surface, font)
        self.pops = 0

    def pop(self) -> None:
        self.pops += 1
        super().pop()


class BlockingSaver:
    def __init__(self) -> None:
        self.release = threading.Event()

    def save(self, session: SessionInfo, results: tuple[TrialResult, ...]) -> SaveOutcome:
        self.release.wait(timeout=5.0)
        return SaveOutcome.ok()


class OkSaver:
    def save(self, session: SessionInfo, results: tuple[TrialResult, ...]) -> SaveOutcome:
        return SaveOutcome.ok()


@pytest.fixture
def surface() -> Iterator[pygame.Surface]:
    pygame.init()
    try:
        yield pygame.display.set_mode(WINDOW_SIZE)
    finally:
        pygame.quit()


def _build(surface: pygame.Surface, controller: SessionController) -> tuple[CountingApp, IatEngine, IatTestScreen]:
    app = CountingApp(surface, pygame.font.Font(None, 36))
    app.push(MenuScreen(app, "root", [], is_root=True))
    engine = IatEngine(
        blocks=(block(1, left=[Category.COW], right=[Category.HORSE], trials=2),),
        pool=default_stimulus_pool(seed=3),
        clock=FakeClock(),
        wall_clock=FakeWallClock(),
        on_finished=controller.finish,
    )
    screen = IatTestScreen(app, engine=engine, session=controller)
    app.push(screen)
    return app, engine, screen


def _click(x: int, y: int = 200) -> pygame.event.Event:
    return pygame.event.Event(pygame.MOUSEBUTTONDOWN, {"pos": (x, y), "button": 1})


def _joy(button: int) -> pygame.event.Event:
    return pygame.event.Event(pygame.JOYBUTTONDOWN, {"joy": 0, "instance_id": 0, "button": button})


def _enter() -> pygame.event.Event:
    return pygame.event.Event(pygame.KEYDOWN, {"key": pygame.K_RETURN, "scancode": 0, "unicode": "\r", "mod": 0})


def _correct_side(engine: IatEngine) -> Side:
    stim = engine.current_stimulus
    assert stim is not None
    return engine.block.correct_side(stim.category)


def test_clicks_start_answer_by_half_and_leave_only_after_save(surface: pygame.Surface) -> None:
    saver = BlockingSaver()
    controller = SessionController(session=SESSION, saver=saver)
    app, engine, screen = _build(surface, controller)
    try:
        screen.render(surface)
        w = surface.get_width()
        left_x, right_x = 40, w - 40

        screen.handle_event(_click(w // 2))
        assert engine.phase is TrialPhase.PRESENTING

        # A click on the wrong half marks a mistake and keeps the trial open.
        wrong_x = right_x if _correct_side(engine) is Side.LEFT else left_x
        screen.handle_event(_click(wrong_x))
        assert engine.has_mistake is True
        assert engine.results() == ()

        for _ in range(2):
            screen.handle_event(_click(left_x if _correct_side(engine) is Side.LEFT else right_x))

        assert engine.phase is TrialPhase.FINISHED
        results = engine.results()
        assert len(results) == 2
        assert results[0].mistakes == 1
        assert results[1].is_correct is True

        # Save still pending: neither a click nor Enter leaves the screen.
        screen.render(surface)
        assert controller.state is SaveState.SAVING
        screen.handle_event(_click(left_x))
        screen.handle_event(_enter())
        assert app.pops == 0

        saver.release.set()
        assert controller.wait(timeout=5.0) is SaveState.SAVE_SUCCEEDED
        screen.handle_event(_click(left_x))
        assert app.pops == 1
    finally:
        saver.release.set()
        controller.close()


def test_joystick_buttons_map_to_start_left_right(surface: pygame.Surface) -> None:
    controller = SessionController(session=SESSION, saver=OkSaver(), executor=InlineExecutor())
    app, engine, screen = _build(surface, controller)

    # Answer buttons do nothing before the block starts.
    screen.handle_event(_joy(0))
    screen.handle_event(_joy(1))
    assert engine.phase is TrialPhase.AWAITING_START

    screen.handle_event(_joy(2))
    assert engine.phase is TrialPhase.PRESENTING

    for _ in range(2):
        screen.handle_event(_joy(0 if _correct_side(engine) is Side.LEFT else 1))

    assert engine.phase is TrialPhase.FINISHED
    assert all(r.is_correct for r in engine.results())
    assert len(engine.results()) == 2

    screen.render(surface)
    assert controller.state is SaveState.SAVE_SUCCEEDED

    # Only the confirm button leaves the finished screen.
    screen.handle_event(_joy(0))
    screen.handle_event(_joy(1))
    assert app.pops == 0
    screen.handle_event(_joy(2))
    assert app.pops == 1
