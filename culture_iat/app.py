"""Pygame UI shell for the Culture IAT.

Maps keyboard, mouse/touch and joystick input to abstract IAT actions and
renders whatever the engine and session controller expose. Correctness,
timing and block progression live in culture_iat/engine.py.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pygame

from . import __version__
from .blocks import BlockSpec
from .clock import RealClock, RealWallClock
from .config import IatConfig, configure_logging
from .engine import Action, IatEngine, IatSnapshot, TrialPhase
from .persistence import SqliteResultSaver
from .session import SaveState, SessionController, SessionInfo
from .stimuli import StimulusDescriptor, StimulusType, default_stimulus_pool

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

ASSETS_DIR = Path(__file__).resolve().parent / "assets"

_BG = (15, 23, 42)
_PANEL = (30, 41, 59)
_PANEL_BORDER = (51, 65, 85)
_TEXT = (226, 232, 240)
_TEXT_MUTED = (148, 163, 184)
_ACCENT = (96, 165, 250)
_OK = (52, 211, 153)
_ERROR = (239, 68, 68)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            self._handle_key(event.key)
            return

        if event.type == pygame.JOYHATMOTION:
            _, y = event.value
            if y == 1:
                self._move(-1)
            elif y == -1:
                self._move(1)
            return

        if event.type == pygame.JOYBUTTONDOWN:
            # Common mapping: 0 = select, 1 = back/cancel.
            if event.button == 0:
                self._activate()
            elif event.button == 1:
                self._back()

    def _handle_key(self, key: int) -> None:
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(_BG)

        title = self._title_font.render(self._title, True, _ACCENT)
        surface.blit(title, title.get_rect(center=(w // 2, h // 5)))

        row_h = 44
        y = h // 5 + 60
        for idx, item in enumerate(self._items):
            row = pygame.Rect(w // 2 - 200, y, 400, row_h - 6)
            selected = idx == self._selected
            pygame.draw.rect(surface, _ACCENT if selected else _PANEL, row, border_radius=8)
            pygame.draw.rect(surface, _PANEL_BORDER, row, 1, border_radius=8)
            color = _BG if selected else _TEXT
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, text.get_rect(center=row.center))
            y += row_h

        foot = self._hint_font.render("Enter: выбрать  |  Esc: назад", True, _TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 16)))


def action_from_key(key: int, scancode: int | None = None) -> Action | None:
    """Map a key press to an IAT action.

    A known scancode decides alone, so E/I are the physical keys on any
    layout (Russian ЙЦУКЕН, Dvorak). Keycodes are used only when the event
    carries no scancode.
    """

    if scancode:
        by_scancode = {
            pygame.KSCAN_SPACE: Action.START,
            pygame.KSCAN_E: Action.LEFT,
            pygame.KSCAN_I: Action.RIGHT,
        }
        return by_scancode.get(scancode)
    by_key = {
        pygame.K_SPACE: Action.START,
        pygame.K_e: Action.LEFT,
        pygame.K_i: Action.RIGHT,
    }
    return by_key.get(key)


class IatTestScreen:
    def __init__(
        self,
        app: App,
        *,
        engine: IatEngine,
        session: SessionController,
    ) -> None:
        self._app = app
        self._engine = engine
        self._session = session

        self._small_font = pygame.font.Font(None, 24)
        self._tiny_font = pygame.font.Font(None, 18)
        self._label_font = pygame.font.Font(None, 34)
        self._word_font = pygame.font.Font(None, 72)
        self._mistake_font = pygame.font.Font(None, 160)
        self._title_font = pygame.font.Font(None, 42)

        self._image_cache: dict[str, pygame.Surface | None] = {}
        self._width = WINDOW_SIZE[0]

    def handle_event(self, event: pygame.event.Event) -> None:
        snap = self._engine.snapshot()

        if event.type == pygame.KEYDOWN:
            # Emergency exit from any state.
            if event.key == pygame.K_F12 or (
                event.key == pygame.K_ESCAPE and (getattr(event, "mod", 0) & pygame.KMOD_SHIFT)
            ):
                self._leave()
                return
            if snap.phase is TrialPhase.FINISHED:
                if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_ESCAPE):
                    self._leave_when_saved()
                return
            if event.key == pygame.K_ESCAPE and self._engine.can_exit():
                self._leave()
                return
            action = action_from_key(event.key, getattr(event, "scancode", None))
            if action is not None:
                self._engine.handle_action(action)
            return

        if event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 1) == 1:
            if snap.phase is TrialPhase.AWAITING_START:
                self._engine.handle_action(Action.START)
            elif snap.phase is TrialPhase.PRESENTING:
                x, _ = event.pos
                self._engine.handle_action(Action.LEFT if x < self._width // 2 else Action.RIGHT)
            elif snap.phase is TrialPhase.FINISHED:
                self._leave_when_saved()
            return

        if event.type == pygame.JOYBUTTONDOWN:
            # 0 = left, 1 = right, 2 = start/confirm.
            mapping = {0: Action.LEFT, 1: Action.RIGHT, 2: Action.START}
            action = mapping.get(event.button)
            if action is None:
                return
            if snap.phase is TrialPhase.FINISHED:
                if action is Action.START:
                    self._leave_when_saved()
                return
            self._engine.handle_action(action)

    def render(self, surface: pygame.Surface) -> None:
        self._session.update()
        self._width = surface.get_width()
        snap = self._engine.snapshot()

        if snap.phase is TrialPhase.FINISHED:
            self._render_finished(surface)
        elif snap.phase is TrialPhase.AWAITING_START:
            self._render_instructions(surface, snap)
        else:
            self._render_trial(surface, snap)

    def _leave(self) -> None:
        self._session.close()
        self._app.pop()

    def _leave_when_saved(self) -> None:
        if self._session.state is SaveState.SAVING:
            return
        self._leave()

    def _render_instructions(self, surface: pygame.Surface, snap: IatSnapshot) -> None:
        w, h = surface.get_size()
        surface.fill(_BG)

        title = self._title_font.render(snap.title or f"Блок {snap.block_number}", True, _ACCENT)
        surface.blit(title, title.get_rect(center=(w // 2, h // 6)))

        lines = snap.instruction.split("\n") if snap.instruction else []
        panel_h = max(80, 40 + len(lines) * 34)
        panel = pygame.Rect(w // 2 - min(380, w // 2 - 20), h // 6 + 40, min(760, w - 40), panel_h)
        pygame.draw.rect(surface, _PANEL, panel, border_radius=12)
        pygame.draw.rect(surface, _PANEL_BORDER, panel, 1, border_radius=12)

        y = panel.y + 20
        for line in lines:
            txt = self._label_font.render(line, True, _TEXT)
            surface.blit(txt, txt.get_rect(midtop=(panel.centerx, y)))
            y += 34

        # Pulse the start hint.
        if (pygame.time.get_ticks() // 600) % 2 == 0:
            hint = self._small_font.render(
                "Нажмите ПРОБЕЛ или коснитесь экрана, чтобы начать", True, _OK
            )
            surface.blit(hint, hint.get_rect(center=(w // 2, panel.bottom + 50)))

    def _render_trial(self, surface: pygame.Surface, snap: IatSnapshot) -> None:
        w, h = surface.get_size()
        surface.fill(_BG)

        y = 24
        for label in snap.left_labels:
            txt = self._label_font.render(label.upper(), True, _ACCENT)
            surface.blit(txt, (24, y))
            y += 32
        y = 24
        for label in snap.right_labels:
            txt = self._label_font.render(label.upper(), True, _ACCENT)
            surface.blit(txt, txt.get_rect(topright=(w - 24, y)))
            y += 32

        block_txt = self._tiny_font.render(
            f"Блок {snap.block_number} из {snap.block_count}", True, _TEXT_MUTED
        )
        surface.blit(block_txt, block_txt.get_rect(midtop=(w // 2, 24)))
        bar = pygame.Rect(w // 2 - 64, 44, 128, 6)
        pygame.draw.rect(surface, _PANEL, bar, border_radius=3)
        if snap.trial_total > 0:
            fill = bar.copy()
            fill.w = int(bar.w * snap.trial_number / snap.trial_total)
            pygame.draw.rect(surface, _OK, fill, border_radius=3)
        count_txt = self._tiny_font.render(f"{snap.trial_number} / {snap.trial_total}", True, _TEXT_MUTED)
        surface.blit(count_txt, count_txt.get_rect(midtop=(w // 2, 56)))

        center = (w // 2, h // 2)
        if snap.stimulus is not None:
            self._draw_stimulus(surface, snap.stimulus, center)

        if snap.has_mistake:
            mark = self._mistake_font.render("X", True, _ERROR)
            surface.blit(mark, mark.get_rect(center=center))

        for rect, text in (
            (pygame.Rect(16, h - 72, w // 2 - 24, 56), "Нажмите E"),
            (pygame.Rect(w // 2 + 8, h - 72, w // 2 - 24, 56), "Нажмите I"),
        ):
            pygame.draw.rect(surface, _PANEL, rect, border_radius=12)
            pygame.draw.rect(surface, _PANEL_BORDER, rect, 1, border_radius=12)
            txt = self._small_font.render(text, True, _TEXT_MUTED)
            surface.blit(txt, txt.get_rect(center=rect.center))

    def _draw_stimulus(
        self, surface: pygame.Surface, stimulus: StimulusDescriptor, center: tuple[int, int]
    ) -> None:
        if stimulus.kind is StimulusType.IMAGE:
            image = self._load_image(stimulus.content)
            if image is not None:
                surface.blit(image, image.get_rect(center=center))
                return
            # Missing asset: frame with the reference so the trial stays answerable.
            frame = pygame.Rect(0, 0, 260, 200)
            frame.center = center
            pygame.draw.rect(surface, _PANEL, frame, border_radius=8)
            pygame.draw.rect(surface, _PANEL_BORDER, frame, 4, border_radius=8)
            txt = self._small_font.render(Path(stimulus.content).stem, True, _TEXT)
            surface.blit(txt, txt.get_rect(center=frame.center))
            return

        word = self._word_font.render(stimulus.content, True, _TEXT)
        surface.blit(word, word.get_rect(center=center))

    def _load_image(self, ref: str) -> pygame.Surface | None:
        if ref in self._image_cache:
            return self._image_cache[ref]
        path = Path(ref)
        if not path.is_absolute():
            path = ASSETS_DIR / path
        image: pygame.Surface | None = None
        if path.exists():
            try:
                loaded = pygame.image.load(str(path))
            except pygame.error as exc:
                logger.warning("cannot load stimulus image %s: %s", path, exc)
            else:
                max_h = 300
                if loaded.get_height() > max_h:
                    scale = max_h / float(loaded.get_height())
                    loaded = pygame.transform.smoothscale(
                        loaded, (int(loaded.get_width() * scale), max_h)
                    )
                image = loaded
        self._image_cache[ref] = image
        return image

    def _render_finished(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(_BG)
        state = self._session.snapshot()

        title = self._title_font.render("Тест завершен!", True, _OK)
        surface.blit(title, title.get_rect(center=(w // 2, h // 4)))

        if state.state is SaveState.SAVING or state.state is SaveState.RUNNING:
            msg = self._small_font.render("Сохранение результатов...", True, _TEXT_MUTED)
            surface.blit(msg, msg.get_rect(center=(w // 2, h // 2)))
            return

        if state.state is SaveState.SAVE_FAILED:
            head = self._label_font.render("Ошибка сохранения", True, _ERROR)
            surface.blit(head, head.get_rect(center=(w // 2, h // 2 - 30)))
            msg = self._small_font.render(state.error_message or "", True, _TEXT)
            surface.blit(msg, msg.get_rect(center=(w // 2, h // 2 + 10)))
        else:
            msg = self._small_font.render(
                "Данные успешно сохранены. Спасибо за участие.", True, _TEXT_MUTED
            )
            surface.blit(msg, msg.get_rect(center=(w // 2, h // 2)))

        back = self._small_font.render("Enter: вернуться в меню", True, _ACCENT)
        surface.blit(back, back.get_rect(center=(w // 2, h - 60)))


def build_iat_screen(app: App, *, config: IatConfig, blocks: tuple[BlockSpec, ...]) -> IatTestScreen:
    seed = config.session_seed()
    session_info = SessionInfo(
        participant_id=config.participant_id,
        seed=seed,
        started_at_utc=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time())),
        app_version=__version__,
        group=config.group,
    )
    controller = SessionController(session=session_info, saver=SqliteResultSaver(config.db_path))
    engine = IatEngine(
        blocks=blocks,
        pool=default_stimulus_pool(seed=seed),
        clock=RealClock(),
        wall_clock=RealWallClock(),
        on_finished=controller.finish,
    )
    return IatTestScreen(app, engine=engine, session=controller)


def _init_joysticks() -> None:
    # Safe on platforms with no joystick support.
    try:
        count = pygame.joystick.get_count()
    except pygame.error:
        return

    for i in range(count):
        try:
            pygame.joystick.Joystick(i).init()
        except pygame.error:
            continue


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    config: IatConfig | None = None,
) -> int:
    cfg = config or IatConfig.from_env()
    configure_logging(cfg.log_level)
    # Fail before opening a window if the protocol is broken.
    blocks = cfg.load_blocks()

    pygame.init()
    _init_joysticks()

    pygame.display.set_caption("Culture IAT")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    def open_test() -> None:
        app.push(build_iat_screen(app, config=cfg, blocks=blocks))

    main_items = [
        MenuItem("Начать тест", open_test),
        MenuItem("Выход", app.quit),
    ]
    app.push(MenuScreen(app, "Тест имплицитных ассоциаций", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
