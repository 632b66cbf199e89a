"""Authentication methods, credential validation and credential setters."""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Mapping, MutableMapping

from dotenv import set_key

if TYPE_CHECKING:
    from contentgw.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_AUTH_TYPE_ENV = "CONTENTGW_DEFAULT_AUTH_TYPE"


class AuthType(str, Enum):
    USE_OPENAI = "openai"
    USE_ZHIPU = "zhipu"


AUTH_LABELS = {
    AuthType.USE_OPENAI: "OpenAI",
    AuthType.USE_ZHIPU: "Zhipu AI",
}

# Provider credential variables, in default-selection precedence order.
API_KEY_ENV = {
    AuthType.USE_OPENAI: "OPENAI_API_KEY",
    AuthType.USE_ZHIPU: "ZHIPU_API_KEY",
}


def parse_auth_type(value: str | None) -> AuthType | None:
    """Return the AuthType named by ``value``, or None if it is not one."""
    if not value:
        return None
    try:
        return AuthType(value)
    except ValueError:
        return None


def validate_auth_method(
    auth_method: AuthType | str, environ: Mapping[str, str] | None = None
) -> str | None:
    """Return an error message if the method cannot be used, else None."""
    env = os.environ if environ is None else environ
    auth_type = parse_auth_type(auth_method)
    if auth_type is None:
        return "Invalid auth method selected."
    key_var = API_KEY_ENV[auth_type]
    if not env.get(key_var):
        return (
            f"{key_var} environment variable not found. You can enter it "
            "interactively or add it to your .env file."
        )
    return None


def default_auth_type(
    settings: Settings | None, environ: Mapping[str, str] | None = None
) -> AuthType | None:
    """Pick the method to preselect.

    Precedence: the method saved in settings, then a valid
    CONTENTGW_DEFAULT_AUTH_TYPE, then the first provider whose API key
    variable is set.
    """
    env = os.environ if environ is None else environ
    if settings is not None and settings.selected_auth_type is not None:
        return settings.selected_auth_type
    override = parse_auth_type(env.get(DEFAULT_AUTH_TYPE_ENV))
    if override is not None:
        return override
    for auth_type, key_var in API_KEY_ENV.items():
        if env.get(key_var):
            return auth_type
    return None


def _set_env(
    name: str,
    value: str,
    environ: MutableMapping[str, str] | None,
    env_file: Path | None,
) -> None:
    env = os.environ if environ is None else environ
    env[name] = value
    if env_file is None:
        logger.debug("Set %s for this process", name)
        return
    env_file.parent.mkdir(parents=True, exist_ok=True)
    env_file.touch(exist_ok=True)
    set_key(str(env_file), name, value)
    logger.debug("Saved %s to %s", name, env_file)


def set_openai_api_key(
    api_key: str,
    environ: MutableMapping[str, str] | None = None,
    env_file: Path | None = None,
) -> None:
    _set_env("OPENAI_API_KEY", api_key, environ, env_file)


def set_openai_base_url(
    base_url: str,
    environ: MutableMapping[str, str] | None = None,
    env_file: Path | None = None,
) -> None:
    _set_env("OPENAI_BASE_URL", base_url, environ, env_file)


def set_openai_model(
    model: str,
    environ: MutableMapping[str, str] | None = None,
    env_file: Path | None = None,
) -> None:
    _set_env("OPENAI_MODEL", model, environ, env_file)


def set_zhipu_api_key(
    api_key: str,
    environ: MutableMapping[str, str] | None = None,
    env_file: Path | None = None,
) -> None:
    _set_env("ZHIPU_API_KEY", api_key, environ, env_file)


def set_zhipu_model(
    model: str,
    environ: MutableMapping[str, str] | None = None,
    env_file: Path | None = None,
) -> None:
    _set_env("ZHIPU_MODEL", model, environ, env_file)


def apply_credentials(
    auth_type: AuthType,
    values: Mapping[str, str | None],
    environ: MutableMapping[str, str] | None = None,
    env_file: Path | None = None,
) -> None:
    """Hand captured credential values to the provider's setters.

    With ``env_file`` the values are also written to that dotenv file so
    later processes pick them up.
    """
    if auth_type == AuthType.USE_OPENAI:
        set_openai_api_key(values["api_key"], environ, env_file)
        if values.get("base_url"):
            set_openai_base_url(values["base_url"], environ, env_file)
        if values.get("model"):
            set_openai_model(values["model"], environ, env_file)
    elif auth_type == AuthType.USE_ZHIPU:
        set_zhipu_api_key(values["api_key"], environ, env_file)
        if values.get("model"):
            set_zhipu_model(values["model"], environ, env_file)
    else:
        raise ValueError(f"No credential setters for auth type: {auth_type}")
