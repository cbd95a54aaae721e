from __future__ import annotations

import pytest

from culture_iat.errors import ConfigurationError, EmptyPoolError
from culture_iat.stimuli import (
    Category,
    StimulusDescriptor,
    StimulusPool,
    StimulusType,
    default_stimuli,
    default_stimulus_pool,
)


def test_pick_is_deterministic_for_seed() -> None:
    allowed = {Category.BASHKIR, Category.COW}
    p1 = default_stimulus_pool(seed=99)
    p2 = default_stimulus_pool(seed=99)

    seq1 = [p1.pick(allowed).stimulus_id for _ in range(30)]
    seq2 = [p2.pick(allowed).stimulus_id for _ in range(30)]
    assert seq1 == seq2


def test_pick_only_returns_allowed_categories() -> None:
    pool = default_stimulus_pool(seed=3)
    allowed = {Category.RUSSIAN, Category.HORSE}
    seen = {pool.pick(allowed).category for _ in range(200)}
    assert seen == allowed


def test_pick_reaches_every_eligible_stimulus() -> None:
    pool = default_stimulus_pool(seed=11)
    eligible = {s.stimulus_id for s in pool.eligible([Category.COW])}
    drawn = {pool.pick([Category.COW]).stimulus_id for _ in range(500)}
    assert drawn == eligible


def test_pick_with_no_match_raises_empty_pool_error() -> None:
    pool = default_stimulus_pool(seed=1)
    with pytest.raises(EmptyPoolError):
        pool.pick({"flower"})
    assert issubclass(EmptyPoolError, ConfigurationError)


def test_duplicate_ids_rejected() -> None:
    s = StimulusDescriptor(stimulus_id="x", kind=StimulusType.WORD, category=Category.COW, content="x")
    with pytest.raises(ValueError):
        StimulusPool([s, s], seed=0)


def test_default_catalog_covers_all_categories() -> None:
    pool = default_stimulus_pool(seed=0)
    assert {s.category for s in default_stimuli()} == set(Category)
    kinds = {(s.category, s.kind) for s in default_stimuli()}
    assert (Category.BASHKIR, StimulusType.WORD) in kinds
    assert (Category.HORSE, StimulusType.IMAGE) in kinds
    assert len(pool) == len(default_stimuli())
