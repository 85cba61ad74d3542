"""App configuration (generation connection settings).

Stored as config.json in the data directory. get_config() returns the
defaults merged with stored values, then environment overrides for the
connection (so an API key can live in .env rather than on disk).
update_config() applies a partial update and persists it.
"""

import json
import os
from pathlib import Path
from typing import Any

from storyweave.llm import HttpStoryGenerator

_CONFIG_DEFAULTS: dict[str, Any] = {
    "generation": {
        "provider_url": "https://openrouter.ai/api",
        "api_key": "",
        "provider_format": "openai",
        "model": "deepseek/deepseek-chat",
        "timeout": 10,
        "stream": True,
        "temperature": 0.7,
        "max_tokens": 1000,
    },
}

# env var -> key under "generation"
_ENV_OVERRIDES = {
    "STORYWEAVE_PROVIDER_URL": "provider_url",
    "STORYWEAVE_API_KEY": "api_key",
    "STORYWEAVE_PROVIDER_FORMAT": "provider_format",
    "STORYWEAVE_MODEL": "model",
}


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def _stored_config(data_dir: Path) -> dict[str, Any]:
    path = _config_path(data_dir)
    if not path.is_file():
        return {}
    return json.loads(path.read_text())


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values and env overrides."""
    config: dict[str, Any] = {"generation": dict(_CONFIG_DEFAULTS["generation"])}
    stored = _stored_config(data_dir)
    if isinstance(stored.get("generation"), dict):
        config["generation"].update(stored["generation"])
    for var, key in _ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value:
            config["generation"][key] = value
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into the stored config and persist. Returns full config.

    Only stored values are written; environment overrides never reach disk.
    """
    stored = _stored_config(data_dir)
    generation = stored.setdefault("generation", {})
    if isinstance(fields.get("generation"), dict):
        for key, value in fields["generation"].items():
            if key in _CONFIG_DEFAULTS["generation"]:
                generation[key] = value
    _config_path(data_dir).write_text(json.dumps(stored, indent=2))
    return get_config(data_dir)


def public_config(config: dict[str, Any]) -> dict[str, Any]:
    """Config safe to return over HTTP: the API key is masked."""
    generation = dict(config["generation"])
    generation["api_key"] = "***" if generation.get("api_key") else ""
    return {**config, "generation": generation}


def generator_from_config(config: dict[str, Any]) -> HttpStoryGenerator:
    gen = config["generation"]
    return HttpStoryGenerator(
        provider_url=gen["provider_url"],
        api_key=gen["api_key"],
        provider_format=gen["provider_format"],
        model=gen["model"],
        timeout=float(gen["timeout"]),
        stream=bool(gen["stream"]),
        temperature=float(gen["temperature"]),
        max_tokens=int(gen["max_tokens"]),
    )
