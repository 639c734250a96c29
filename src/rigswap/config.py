"""YAML-backed settings store."""

from __future__ import annotations

from io import StringIO
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from rigswap.errors import ConfigError
from rigswap.models import Settings


def _make_yaml() -> YAML:
    """Create a ruamel.yaml safe loader that errors on duplicate keys."""
    yml = YAML(typ="safe")
    yml.allow_duplicate_keys = False
    yml.default_flow_style = False
    return yml


class ConfigStore:
    """Persists the selected model name and the menu hotkey.

    Every setter writes through to disk immediately.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.settings = self._load()

    @property
    def current_model(self) -> str:
        return self.settings.general.current_model

    @current_model.setter
    def current_model(self, name: str) -> None:
        self._update(general={"current_model": name})

    @property
    def menu_toggle_key(self) -> str:
        return self.settings.hotkeys.menu_toggle

    @menu_toggle_key.setter
    def menu_toggle_key(self, key: str) -> None:
        self._update(hotkeys={"menu_toggle": key})

    def reload(self) -> Settings:
        self.settings = self._load()
        return self.settings

    def save(self) -> None:
        buf = StringIO()
        _make_yaml().dump(self.settings.model_dump(), buf)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(buf.getvalue(), encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot write settings to {self.path}: {e}") from e

    def _update(self, **sections: dict) -> None:
        data = self.settings.model_dump()
        for section, values in sections.items():
            data[section].update(values)
        try:
            self.settings = Settings(**data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid setting:\n{e}") from e
        self.save()

    def _load(self) -> Settings:
        if not self.path.exists():
            return Settings()
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read file: {e}") from e
        try:
            data = _make_yaml().load(text)
        except YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.path}: {e}") from e

        if data is None:
            return Settings()
        if not isinstance(data, dict):
            raise ConfigError("Top-level YAML value must be a mapping")
        try:
            return Settings(**data)
        except PydanticValidationError as e:
            raise ConfigError(f"Schema validation failed:\n{e}") from e
