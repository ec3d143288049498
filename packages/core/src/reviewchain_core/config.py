import copy
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from reviewchain_core.errors import ConfigurationError, PersistenceError
from reviewchain_core.models import (
    DEFAULT_MODELS,
    OPENAI,
    OPENAI_COMPATIBLE,
    PROVIDER_TAGS,
    ExtensionConfig,
    StepConfig,
)

logger = logging.getLogger(__name__)

CONFIG_KEY = "config"

DEFAULT_STEP_NAMES: dict = {
    "step1": "Issue scan",
    "step2": "Detailed review",
    "step3": "Improvement suggestions",
}

DEFAULT_PROMPTS: dict = {
    "step1": (
        "Examine the code diff below and list potential problems, bugs and security concerns. "
        "Focus on finding anything critical."
    ),
    "step2": (
        "Building on the previous analysis, perform a detailed code review of the diff below. "
        "Evaluate code quality, readability, maintainability and performance."
    ),
    "step3": (
        "Building on the previous review, propose concrete improvements for the diff below. "
        "Include example implementations that would make the code better."
    ),
}

# CLI-level settings, separate from the persisted ExtensionConfig document.
DEFAULT_SETTINGS: dict = {
    "store": "sqlite",  # sqlite | gist | memory
    "store_path": ".reviewchain.db",
    "gist_id": None,
}


def _default_provider_slot(tag: str) -> dict:
    slot = {"apiKey": "", "model": DEFAULT_MODELS[tag]}
    if tag == OPENAI_COMPATIBLE:
        slot["baseUrl"] = ""
    return slot


def default_config_dict() -> dict:
    return {
        "selectedProvider": OPENAI,
        "providers": {tag: _default_provider_slot(tag) for tag in PROVIDER_TAGS},
        "reviewSteps": [
            {"id": step, "name": DEFAULT_STEP_NAMES[step], "order": i, "enabled": True, "prompt": DEFAULT_PROMPTS[step]}
            for i, step in enumerate(("step1", "step2", "step3"), 1)
        ],
    }


def default_config() -> ExtensionConfig:
    return ExtensionConfig.from_dict(default_config_dict())


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


def _is_legacy_step(entry: dict) -> bool:
    return "id" not in entry and "step" in entry


def migrate_steps(raw: dict) -> bool:
    """Rewrite legacy ``{step, prompt, enabled}`` entries in place.

    Returns True if anything changed.
    """
    steps = raw["reviewSteps"]
    if not any(_is_legacy_step(s) for s in steps):
        return False
    migrated = []
    for position, entry in enumerate(steps, 1):
        if not _is_legacy_step(entry):
            migrated.append(entry)
            continue
        step = entry["step"]
        migrated.append(
            {
                "id": step,
                "name": DEFAULT_STEP_NAMES.get(step, step),
                "order": position,
                "enabled": bool(entry.get("enabled", True)),
                "prompt": entry.get("prompt") or DEFAULT_PROMPTS.get(step, ""),
            }
        )
    raw["reviewSteps"] = migrated
    return True


def migrate_providers(raw: dict) -> bool:
    """Move a flat legacy ``apiKey`` under the openai slot and fill missing slots.

    Returns True if anything changed.
    """
    changed = False
    providers = raw.get("providers")
    if not isinstance(providers, dict):
        providers = {tag: _default_provider_slot(tag) for tag in PROVIDER_TAGS}
        providers[OPENAI]["apiKey"] = raw.get("apiKey", "") or ""
        raw["providers"] = providers
        changed = True
    else:
        for tag in PROVIDER_TAGS:
            if not isinstance(providers.get(tag), dict):
                providers[tag] = _default_provider_slot(tag)
                changed = True

    if "apiKey" in raw:
        del raw["apiKey"]
        changed = True
    if raw.get("selectedProvider") not in PROVIDER_TAGS:
        raw["selectedProvider"] = OPENAI
        changed = True
    return changed


def is_malformed(raw) -> bool:
    if not isinstance(raw, dict):
        return True
    steps = raw.get("reviewSteps")
    return not isinstance(steps, list) or not steps or not all(isinstance(s, dict) for s in steps)


def migrate_config(raw: dict) -> tuple:
    """Return ``(migrated_copy, changed)``. Running it on its own output is a no-op."""
    doc = copy.deepcopy(raw)
    steps_changed = migrate_steps(doc)
    providers_changed = migrate_providers(doc)
    return doc, steps_changed or providers_changed


class ConfigStore:
    """Reads, migrates and saves the global ExtensionConfig document."""

    def __init__(self, backend, key: str = CONFIG_KEY):
        self._backend = backend
        self._key = key

    def get(self) -> ExtensionConfig:
        """Return the persisted configuration, migrating older shapes. Never raises."""
        try:
            raw = self._backend.get(self._key)
        except Exception as e:
            logger.warning("Could not read configuration, using defaults: %s", e, extra={"key": self._key})
            return default_config()

        if raw is None:
            return default_config()
        if is_malformed(raw):
            logger.warning("Stored configuration has no review steps, using defaults", extra={"key": self._key})
            return default_config()

        try:
            doc, changed = migrate_config(raw)
            config = ExtensionConfig.from_dict(doc)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Stored configuration is unreadable, using defaults: %s", e, extra={"key": self._key})
            return default_config()

        if changed:
            logger.info("Migrated stored configuration to the current shape")
            try:
                self._backend.set(self._key, doc)
            except Exception as e:
                logger.warning("Could not persist migrated configuration: %s", e, extra={"key": self._key})
        return config

    def save(self, config: ExtensionConfig) -> None:
        try:
            self._backend.set(self._key, config.to_dict())
        except Exception as e:
            raise PersistenceError(f"Could not save configuration: {e}") from e

    def reset(self) -> ExtensionConfig:
        config = default_config()
        self.save(config)
        return config


# ---------------------------------------------------------------------------
# CLI settings and step files
# ---------------------------------------------------------------------------


def load_settings(config_path: str = ".reviewchain.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load CLI settings by merging (in order of precedence):
      1. Built-in defaults
      2. .reviewchain.yml in the current directory
      3. CLI argument overrides
    """
    settings = dict(DEFAULT_SETTINGS)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_settings = yaml.safe_load(f) or {}
        settings.update(file_settings)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                settings[key] = value

    settings["github_token"] = os.environ.get("GITHUB_TOKEN")
    return settings


def load_steps_file(path: str) -> list:
    """Load step definitions from a YAML list.

    Each entry needs ``id`` and ``prompt``; ``name`` defaults to the id,
    ``order`` to the position and ``enabled`` to true.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Steps file not found: {path}")
    data = yaml.safe_load(p.read_text()) or []
    if isinstance(data, dict):
        data = data.get("reviewSteps") or data.get("steps") or []
    if not isinstance(data, list) or not data:
        raise ConfigurationError(f"{path} must contain a non-empty list of steps.")

    steps = []
    seen = set()
    for position, entry in enumerate(data, 1):
        if not isinstance(entry, dict) or not entry.get("id") or not entry.get("prompt"):
            raise ConfigurationError(f"Step #{position} in {path} needs an 'id' and a 'prompt'.")
        step_id = str(entry["id"])
        if step_id in seen:
            raise ConfigurationError(f"Duplicate step id {step_id!r} in {path}.")
        seen.add(step_id)
        steps.append(
            StepConfig(
                id=step_id,
                name=entry.get("name") or step_id,
                order=int(entry.get("order", position)),
                enabled=bool(entry.get("enabled", True)),
                prompt=entry["prompt"],
            )
        )
    return steps
