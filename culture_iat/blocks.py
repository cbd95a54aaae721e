from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import ConfigurationError
from .stimuli import Category, StimulusPool


class Side(str, Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True, slots=True)
class BlockSpec:
    """One block of the protocol.

    Only the category sets and trial count drive the engine; title and
    instruction are shown by the presentation layer as-is.
    """

    block_id: int
    left_categories: tuple[str, ...]  # display order, no duplicates
    right_categories: tuple[str, ...]
    trial_count: int
    title: str = ""
    instruction: str = ""

    @property
    def categories(self) -> frozenset[str]:
        return frozenset(self.left_categories) | frozenset(self.right_categories)

    def correct_side(self, category: str) -> Side:
        return Side.LEFT if category in self.left_categories else Side.RIGHT


def block(
    block_id: int,
    *,
    left: Iterable[str],
    right: Iterable[str],
    trials: int,
    title: str = "",
    instruction: str = "",
) -> BlockSpec:
    return BlockSpec(
        block_id=int(block_id),
        left_categories=tuple(dict.fromkeys(left)),
        right_categories=tuple(dict.fromkeys(right)),
        trial_count=int(trials),
        title=title,
        instruction=instruction,
    )


def default_blocks() -> tuple[BlockSpec, ...]:
    """Six-block culture/animal protocol; blocks 4-6 swap the word sides."""

    return (
        block(
            1,
            left=[Category.BASHKIR],
            right=[Category.RUSSIAN],
            trials=10,
            title="Этап 1: Слова",
            instruction=(
                "Нажимайте 'E' (слева) для БАШКИРСКИХ слов.\n"
                "Нажимайте 'I' (справа) для РУССКИХ слов."
            ),
        ),
        block(
            2,
            left=[Category.COW],
            right=[Category.HORSE],
            trials=10,
            title="Этап 2: Картинки",
            instruction="Нажимайте 'E' (слева) для КОРОВ.\nНажимайте 'I' (справа) для ЛОШАДЕЙ.",
        ),
        block(
            3,
            left=[Category.BASHKIR, Category.COW],
            right=[Category.RUSSIAN, Category.HORSE],
            trials=20,
            title="Этап 3: Совмещение (Тренировка)",
            instruction=(
                "Нажимайте 'E' для БАШКИРЫ или КОРОВЫ.\n"
                "Нажимайте 'I' для РУССКИЕ или ЛОШАДИ."
            ),
        ),
        block(
            4,
            left=[Category.RUSSIAN],
            right=[Category.BASHKIR],
            trials=10,
            title="Этап 4: Смена сторон (Слова)",
            instruction=(
                "ВНИМАНИЕ: Стороны поменялись!\n"
                "Нажимайте 'E' (слева) для РУССКИХ слов.\n"
                "Нажимайте 'I' (справа) для БАШКИРСКИХ слов."
            ),
        ),
        block(
            5,
            left=[Category.RUSSIAN, Category.COW],
            right=[Category.BASHKIR, Category.HORSE],
            trials=20,
            title="Этап 5: Обратное совмещение",
            instruction=(
                "Нажимайте 'E' для РУССКИЕ или КОРОВЫ.\n"
                "Нажимайте 'I' для БАШКИРЫ или ЛОШАДИ."
            ),
        ),
        block(
            6,
            left=[Category.RUSSIAN, Category.COW],
            right=[Category.BASHKIR, Category.HORSE],
            trials=20,
            title="Этап 6: Финал",
            instruction=(
                "Повторим предыдущее задание.\n"
                "Нажимайте 'E' для РУССКИЕ или КОРОВЫ.\n"
                "Нажимайте 'I' для БАШКИРЫ или ЛОШАДИ."
            ),
        ),
    )


def validate_blocks(blocks: Sequence[BlockSpec], *, pool: StimulusPool | None = None) -> None:
    """Raise ConfigurationError unless the protocol can be administered."""

    if not blocks:
        raise ConfigurationError("block catalog is empty")

    for expected_id, spec in enumerate(blocks, start=1):
        if spec.block_id != expected_id:
            raise ConfigurationError(
                f"block ids must be sequential from 1: expected {expected_id}, got {spec.block_id}"
            )
        if spec.trial_count <= 0:
            raise ConfigurationError(f"block {spec.block_id}: trial count must be > 0")
        if not spec.left_categories or not spec.right_categories:
            raise ConfigurationError(f"block {spec.block_id}: both sides need at least one category")
        overlap = set(spec.left_categories) & set(spec.right_categories)
        if overlap:
            raise ConfigurationError(
                f"block {spec.block_id}: categories on both sides: {sorted(overlap)}"
            )
        if pool is not None:
            # Each side must be drawable, otherwise that side is never tested.
            for side, cats in ((Side.LEFT, spec.left_categories), (Side.RIGHT, spec.right_categories)):
                if pool.count(cats) == 0:
                    raise ConfigurationError(
                        f"block {spec.block_id}: no stimuli for {side.value} categories {sorted(cats)}"
                    )


_LABELS: dict[str, str] = {
    Category.BASHKIR: "Башкиры",
    Category.RUSSIAN: "Русские",
    Category.COW: "Коровы",
    Category.HORSE: "Лошади",
}


def category_label(category: str) -> str:
    return _LABELS.get(category, str(category))


def load_blocks(path: Path) -> tuple[BlockSpec, ...]:
    """Load an alternative protocol from JSON.

    Expected shape::

        {"blocks": [{"id": 1, "title": "...", "instruction": "...",
                     "left": ["bashkir"], "right": ["russian"], "trials": 10}]}
    """

    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"cannot read block catalog {path}: {exc}") from exc

    raw_blocks = payload.get("blocks") if isinstance(payload, dict) else None
    if not isinstance(raw_blocks, list):
        raise ConfigurationError(f"{path}: expected an object with a 'blocks' list")

    loaded: list[BlockSpec] = []
    for idx, item in enumerate(raw_blocks, start=1):
        if not isinstance(item, dict):
            raise ConfigurationError(f"{path}: block #{idx} is not an object")
        left = item.get("left")
        right = item.get("right")
        if not isinstance(left, list) or not isinstance(right, list):
            raise ConfigurationError(f"{path}: block #{idx} needs 'left' and 'right' lists")
        try:
            block_id = int(item.get("id", idx))
            trials = int(item["trials"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"{path}: block #{idx} has a bad id or trial count") from exc
        loaded.append(
            block(
                block_id,
                left=(str(c).strip() for c in left),
                right=(str(c).strip() for c in right),
                trials=trials,
                title=str(item.get("title", "")),
                instruction=str(item.get("instruction", "")),
            )
        )

    result = tuple(loaded)
    validate_blocks(result)
    return result
