from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from .errors import EmptyPoolError

logger = logging.getLogger(__name__)


class Category(StrEnum):
    BASHKIR = "bashkir"
    RUSSIAN = "russian"
    COW = "cow"
    HORSE = "horse"


class StimulusType(StrEnum):
    WORD = "word"
    IMAGE = "image"


@dataclass(frozen=True, slots=True)
class StimulusDescriptor:
    stimulus_id: str
    kind: StimulusType
    category: str  # a Category value, or any tag from a JSON protocol
    content: str  # word text, or an image reference resolved by the renderer


class StimulusPool:
    """Opaque stimulus catalog queried by category.

    Selection is uniform over the eligible descriptors and deterministic for a
    given seed.
    """

    def __init__(self, stimuli: Iterable[StimulusDescriptor], *, seed: int) -> None:
        self._stimuli = tuple(stimuli)
        self._rng = random.Random(int(seed))

        seen: set[str] = set()
        for s in self._stimuli:
            if s.stimulus_id in seen:
                raise ValueError(f"duplicate stimulus id: {s.stimulus_id}")
            seen.add(s.stimulus_id)

    def __len__(self) -> int:
        return len(self._stimuli)

    def eligible(self, allowed: Iterable[str]) -> tuple[StimulusDescriptor, ...]:
        allowed_set = frozenset(allowed)
        return tuple(s for s in self._stimuli if s.category in allowed_set)

    def count(self, allowed: Iterable[str]) -> int:
        return len(self.eligible(allowed))

    def pick(self, allowed: Iterable[str]) -> StimulusDescriptor:
        allowed_set = frozenset(allowed)
        candidates = self.eligible(allowed_set)
        if not candidates:
            raise EmptyPoolError(f"no stimuli for categories {sorted(allowed_set)}")
        chosen = self._rng.choice(candidates)
        logger.debug("picked stimulus %s (%s)", chosen.stimulus_id, chosen.category)
        return chosen


_BASHKIR_WORDS = ("Курай", "Кумыс", "Салават", "Тюбетейка", "Бешбармак", "Уфа", "Сабантуй", "Кубыз")
_RUSSIAN_WORDS = ("Балалайка", "Матрёшка", "Самовар", "Кокошник", "Борщ", "Изба", "Масленица", "Гусли")
_IMAGE_COUNT = 6


def _words(category: Category, words: tuple[str, ...]) -> list[StimulusDescriptor]:
    return [
        StimulusDescriptor(
            stimulus_id=f"{category.value}_{i + 1}",
            kind=StimulusType.WORD,
            category=category,
            content=word,
        )
        for i, word in enumerate(words)
    ]


def _images(category: Category) -> list[StimulusDescriptor]:
    return [
        StimulusDescriptor(
            stimulus_id=f"{category.value}_img_{i + 1}",
            kind=StimulusType.IMAGE,
            category=category,
            content=f"images/{category.value}_{i + 1}.jpg",
        )
        for i in range(_IMAGE_COUNT)
    ]


def default_stimuli() -> tuple[StimulusDescriptor, ...]:
    """Built-in catalog: culture words and animal pictures."""

    return (
        *_words(Category.BASHKIR, _BASHKIR_WORDS),
        *_words(Category.RUSSIAN, _RUSSIAN_WORDS),
        *_images(Category.COW),
        *_images(Category.HORSE),
    )


def default_stimulus_pool(*, seed: int) -> StimulusPool:
    return StimulusPool(default_stimuli(), seed=seed)
