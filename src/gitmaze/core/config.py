"""Configuration loading for gitmaze."""

import json
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from gitmaze.core.references import BRANCH_PALETTE

DEFAULT_CONFIG_FILE = Path(".gitmaze") / "config.json"


class ConfigError(ValueError):
    """Raised when a config file exists but cannot be used."""


class GitMazeConfig(BaseModel):
    """User-tunable settings; every field has a working default."""

    lane_width: float = 30.0
    depth_height: float = 40.0
    branch_palette: List[str] = Field(default_factory=lambda: list(BRANCH_PALETTE))
    position_key: str = "playerPosition"
    save_file: Path = Path(".gitmaze") / "save.json"

    @field_validator("branch_palette")
    @classmethod
    def _palette_not_empty(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("branch_palette must contain at least one color")
        return value


def load_config(path: Optional[Union[str, Path]] = None) -> GitMazeConfig:
    """Load config from ``path`` (or the default location) if it exists."""
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_FILE
    if not config_path.exists():
        return GitMazeConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
        return GitMazeConfig.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e
