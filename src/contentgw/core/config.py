"""Configuration management using Pydantic Settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from contentgw.core.auth import AuthType

logger = logging.getLogger(__name__)

SETTINGS_DIR_NAME = ".contentgw"
SETTINGS_FILE_NAME = "settings.yaml"


class ZhipuConfig(BaseModel):
    base_url: str = "https://open.bigmodel.cn/api/paas/v4"
    model: str = "glm-4"
    embedding_model: str = "embedding-2"


class OpenAIConfig(BaseModel):
    base_url: str | None = None
    model: str = "gpt-4o"
    embedding_model: str = "text-embedding-3-small"


class HttpConfig(BaseModel):
    # None disables the client timeout entirely.
    timeout: float | None = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CONTENTGW_",
        env_nested_delimiter="__",
    )

    selected_auth_type: AuthType | None = None
    zhipu: ZhipuConfig = ZhipuConfig()
    openai: OpenAIConfig = OpenAIConfig()
    http: HttpConfig = HttpConfig()


class SettingScope(str, Enum):
    USER = "User"
    WORKSPACE = "Workspace"


@dataclass
class SettingsFile:
    path: Path
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def read(cls, path: Path) -> SettingsFile:
        data: dict = {}
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        return cls(path=path, data=data)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(self.data, f, sort_keys=False)


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class LoadedSettings:
    """User and workspace settings files plus their merged view.

    Workspace values override user values.
    """

    def __init__(self, user: SettingsFile, workspace: SettingsFile):
        self.user = user
        self.workspace = workspace
        self._merged = self._compute_merged()

    @property
    def merged(self) -> Settings:
        return self._merged

    def for_scope(self, scope: SettingScope) -> SettingsFile:
        if scope == SettingScope.USER:
            return self.user
        if scope == SettingScope.WORKSPACE:
            return self.workspace
        raise ValueError(f"Invalid scope: {scope}")

    def set_value(self, scope: SettingScope, key: str, value: Any) -> None:
        """Set a top-level key in one scope and write that file."""
        if isinstance(value, Enum):
            value = value.value
        settings_file = self.for_scope(scope)
        if value is None:
            settings_file.data.pop(key, None)
        else:
            settings_file.data[key] = value
        settings_file.save()
        self._merged = self._compute_merged()
        logger.info("Saved %s=%r to %s settings (%s)", key, value, scope.value, settings_file.path)

    def _compute_merged(self) -> Settings:
        return Settings(**_deep_merge(self.user.data, self.workspace.data))


def get_project_root() -> Path:
    """Walk up from CWD to find pyproject.toml, or fall back to CWD."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return current


def user_settings_path() -> Path:
    return Path.home() / SETTINGS_DIR_NAME / SETTINGS_FILE_NAME


def workspace_settings_path(root: Path | None = None) -> Path:
    return (root or get_project_root()) / SETTINGS_DIR_NAME / SETTINGS_FILE_NAME


def load_settings(
    user_path: Path | None = None,
    workspace_path: Path | None = None,
) -> LoadedSettings:
    """Load user and workspace settings from their YAML files."""
    return LoadedSettings(
        user=SettingsFile.read(user_path or user_settings_path()),
        workspace=SettingsFile.read(workspace_path or workspace_settings_path()),
    )


@dataclass(frozen=True)
class ContentGeneratorConfig:
    """Resolved, read-only connection settings for one generator."""

    model: str
    api_key: str
    auth_type: AuthType
    base_url: str | None = None
    embedding_model: str | None = None
    timeout: float | None = None
