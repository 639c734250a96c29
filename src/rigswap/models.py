"""Pydantic v2 models for registry entries and persisted settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_MODEL_NAME = "Default"
DEFAULT_TOGGLE_KEY = "F10"


class ModelEntry(BaseModel):
    """One selectable character model."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    is_custom: bool = False
    source_path: Path | None = None
    texture_path: Path | None = None
    preview_path: Path | None = None

    @model_validator(mode="after")
    def _custom_needs_source(self) -> ModelEntry:
        if self.is_custom and self.source_path is None:
            raise ValueError(f"Custom model {self.name!r} must have a source_path")
        return self


class GeneralSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_model: str = DEFAULT_MODEL_NAME

    @field_validator("current_model")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("current_model must not be empty")
        return v


class HotkeySettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    menu_toggle: str = DEFAULT_TOGGLE_KEY


class Settings(BaseModel):
    """Top-level persisted settings document."""

    model_config = ConfigDict(extra="forbid")

    general: GeneralSettings = Field(default_factory=GeneralSettings)
    hotkeys: HotkeySettings = Field(default_factory=HotkeySettings)
