from __future__ import annotations

import logging
import os
import random
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .blocks import BlockSpec, default_blocks, load_blocks
from .errors import ConfigurationError

DB_PATH_ENV = "CULTURE_IAT_DB_PATH"
BLOCKS_PATH_ENV = "CULTURE_IAT_BLOCKS_PATH"
SEED_ENV = "CULTURE_IAT_SEED"
LOG_LEVEL_ENV = "CULTURE_IAT_LOG_LEVEL"
PARTICIPANT_ENV = "CULTURE_IAT_PARTICIPANT"
GROUP_ENV = "CULTURE_IAT_GROUP"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


@dataclass(frozen=True, slots=True)
class IatConfig:
    db_path: Path
    seed: int | None = None  # None: fresh seed per session
    blocks_path: Path | None = None
    log_level: str = "WARNING"
    participant_id: str = "anonymous"
    group: str | None = None  # study arm, stored with the session

    @classmethod
    def default_db_path(cls) -> Path:
        return Path.home() / ".culture_iat_results.sqlite3"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "IatConfig":
        env = os.environ if environ is None else environ

        explicit_db = env.get(DB_PATH_ENV, "").strip()
        db_path = Path(explicit_db).expanduser() if explicit_db else cls.default_db_path()

        explicit_blocks = env.get(BLOCKS_PATH_ENV, "").strip()
        blocks_path = Path(explicit_blocks).expanduser() if explicit_blocks else None

        raw_seed = env.get(SEED_ENV, "").strip()
        if raw_seed:
            try:
                seed = int(raw_seed)
            except ValueError as exc:
                raise ConfigurationError(f"{SEED_ENV} must be an integer, got {raw_seed!r}") from exc
        else:
            seed = None

        log_level = env.get(LOG_LEVEL_ENV, "WARNING").strip().upper() or "WARNING"
        if log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"{LOG_LEVEL_ENV} must be one of {', '.join(_LOG_LEVELS)}")

        participant_id = env.get(PARTICIPANT_ENV, "").strip() or "anonymous"
        group = env.get(GROUP_ENV, "").strip() or None

        return cls(
            db_path=db_path,
            seed=seed,
            blocks_path=blocks_path,
            log_level=log_level,
            participant_id=participant_id,
            group=group,
        )

    def session_seed(self) -> int:
        return self.seed if self.seed is not None else new_seed()

    def load_blocks(self) -> tuple[BlockSpec, ...]:
        if self.blocks_path is None:
            return default_blocks()
        return load_blocks(self.blocks_path)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
