"""Credential capture sub-view shown when a provider key is missing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import click

from contentgw.core.auth import AUTH_LABELS, AuthType

CANCEL_WORDS = ("esc", "escape")


@dataclass(frozen=True)
class CredentialField:
    name: str
    label: str
    required: bool = False
    secret: bool = False
    default: str = ""


CREDENTIAL_FIELDS: dict[AuthType, tuple[CredentialField, ...]] = {
    AuthType.USE_OPENAI: (
        CredentialField("api_key", "API Key", required=True, secret=True),
        CredentialField("base_url", "Base URL", default="https://api.openai.com/v1"),
        CredentialField("model", "Model", default="gpt-4o"),
    ),
    AuthType.USE_ZHIPU: (
        CredentialField("api_key", "API Key", required=True, secret=True),
        CredentialField("model", "Model (optional)"),
    ),
}


def prompt_credentials(
    auth_type: AuthType,
    prompt: Callable[..., str] = click.prompt,
    echo: Callable[..., None] = click.echo,
) -> dict[str, str] | None:
    """Ask for each credential field in turn.

    Returns the captured values, or None when the user cancels (typing
    ``esc`` or leaving a required field empty).
    """
    label = AUTH_LABELS[auth_type]
    echo(click.style(f"{label} Configuration Required", bold=True))
    echo(f"Please enter your {label} configuration. Type 'esc' to cancel.")

    values: dict[str, str] = {}
    for field in CREDENTIAL_FIELDS[auth_type]:
        value = prompt(
            field.label,
            default=field.default,
            show_default=bool(field.default),
            hide_input=field.secret,
        ).strip()
        if value.lower() in CANCEL_WORDS:
            return None
        if field.required and not value:
            return None
        values[field.name] = value
    return values
