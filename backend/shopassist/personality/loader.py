"""Assistant persona loader."""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml


_DEFAULT_PATH = Path(__file__).parent / "default.yaml"


def load_personality(path: Path | None = None) -> dict[str, Any]:
    """Load persona configuration from a YAML file.

    Args:
        path: Optional path to a persona YAML file.
              Defaults to default.yaml in this directory.

    Raises:
        FileNotFoundError: If the persona file does not exist.
        yaml.YAMLError: If the file contains invalid YAML.
    """
    config_path = path or _DEFAULT_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Personality file not found: {config_path}")

    with open(config_path) as f:
        config: dict[str, Any] = yaml.safe_load(f) or {}

    return config


@lru_cache(maxsize=1)
def get_system_prompt() -> str:
    """Return the default persona's system prompt."""
    personality = load_personality()
    return personality.get(
        "system_prompt", "You are a helpful shopping assistant."
    ).strip()
