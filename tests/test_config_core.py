from __future__ import annotations

import json
from pathlib import Path

import pytest

from culture_iat.blocks import default_blocks
from culture_iat.config import (
    BLOCKS_PATH_ENV,
    DB_PATH_ENV,
    LOG_LEVEL_ENV,
    GROUP_ENV,
    PARTICIPANT_ENV,
    SEED_ENV,
    IatConfig,
)
from culture_iat.errors import ConfigurationError


def test_defaults_from_empty_environment() -> None:
    cfg = IatConfig.from_env({})
    assert cfg.db_path == IatConfig.default_db_path()
    assert cfg.blocks_path is None
    assert cfg.seed is None
    assert cfg.log_level == "WARNING"
    assert cfg.participant_id == "anonymous"
    assert cfg.group is None
    assert cfg.load_blocks() == default_blocks()
    assert 1 <= cfg.session_seed() <= 2**31 - 1


def test_values_from_environment(tmp_path: Path) -> None:
    protocol = tmp_path / "protocol.json"
    protocol.write_text(
        json.dumps({"blocks": [{"id": 1, "left": ["cow"], "right": ["horse"], "trials": 3}]}),
        encoding="utf-8",
    )
    cfg = IatConfig.from_env(
        {
            DB_PATH_ENV: str(tmp_path / "out.sqlite3"),
            BLOCKS_PATH_ENV: str(protocol),
            SEED_ENV: "77",
            LOG_LEVEL_ENV: "debug",
            PARTICIPANT_ENV: " p-9 ",
            GROUP_ENV: "control",
        }
    )
    assert cfg.db_path == tmp_path / "out.sqlite3"
    assert cfg.seed == 77
    assert cfg.session_seed() == 77
    assert cfg.log_level == "DEBUG"
    assert cfg.participant_id == "p-9"
    assert cfg.group == "control"
    blocks = cfg.load_blocks()
    assert len(blocks) == 1
    assert blocks[0].trial_count == 3


@pytest.mark.parametrize("env", [{SEED_ENV: "abc"}, {LOG_LEVEL_ENV: "chatty"}])
def test_invalid_values_raise(env: dict[str, str]) -> None:
    with pytest.raises(ConfigurationError):
        IatConfig.from_env(env)
