"""Authentication method selection panel.

The panel is a small state machine. Pure transition functions compute the
next ``DialogState`` and, when the flow completes, the ``AuthSelection`` to
report. ``AuthDialog`` applies transitions, runs credential setters, and
invokes the caller's callback; ``run_auth_dialog`` drives it from a terminal.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, MutableMapping

import click

from contentgw.core.auth import (
    API_KEY_ENV,
    AUTH_LABELS,
    AuthType,
    apply_credentials,
    default_auth_type,
    parse_auth_type,
    validate_auth_method,
)
from contentgw.core.config import LoadedSettings, SettingScope
from contentgw.interfaces.key_prompt import CANCEL_WORDS, prompt_credentials

logger = logging.getLogger(__name__)

NO_METHOD_MESSAGE = "You must select an auth method to proceed. Press Ctrl+C twice to exit."


class DialogMode(str, Enum):
    SELECTING = "selecting"
    CAPTURING_CREDENTIAL = "capturing_credential"
    ERROR = "error"


@dataclass(frozen=True)
class DialogState:
    mode: DialogMode = DialogMode.SELECTING
    error_message: str | None = None
    capturing: AuthType | None = None


@dataclass(frozen=True)
class AuthSelection:
    """Outcome of the panel. ``auth_type`` is None when the user cancelled."""

    auth_type: AuthType | None
    scope: SettingScope = SettingScope.USER


@dataclass(frozen=True)
class Transition:
    state: DialogState
    selection: AuthSelection | None = None


def initial_state(initial_error_message: str | None = None) -> DialogState:
    if initial_error_message:
        return DialogState(mode=DialogMode.ERROR, error_message=initial_error_message)
    return DialogState()


def credential_required_message(auth_type: AuthType) -> str:
    label = AUTH_LABELS[auth_type]
    return f"{label} API key is required to use {label} authentication."


def select_method(state: DialogState, auth_method, environ: Mapping[str, str]) -> Transition:
    error = validate_auth_method(auth_method, environ)
    if error is None:
        return Transition(DialogState(), AuthSelection(AuthType(auth_method)))

    auth_type = parse_auth_type(auth_method)
    if auth_type is not None and not environ.get(API_KEY_ENV[auth_type]):
        return Transition(DialogState(mode=DialogMode.CAPTURING_CREDENTIAL, capturing=auth_type))
    return Transition(DialogState(mode=DialogMode.ERROR, error_message=error))


def submit_credentials(state: DialogState) -> Transition:
    if state.mode is not DialogMode.CAPTURING_CREDENTIAL:
        return Transition(state)
    return Transition(DialogState(), AuthSelection(state.capturing))


def cancel_credentials(state: DialogState) -> Transition:
    if state.mode is not DialogMode.CAPTURING_CREDENTIAL:
        return Transition(state)
    return Transition(DialogState(
        mode=DialogMode.ERROR,
        error_message=credential_required_message(state.capturing),
    ))


def press_escape(state: DialogState, current_auth_type: AuthType | None) -> Transition:
    """Escape closes the panel only when a method is configured.

    It is ignored while capturing credentials or while an error is shown.
    """
    if state.mode is DialogMode.CAPTURING_CREDENTIAL:
        return Transition(state)
    if state.error_message:
        return Transition(state)
    if current_auth_type is None:
        return Transition(DialogState(mode=DialogMode.ERROR, error_message=NO_METHOD_MESSAGE))
    return Transition(state, AuthSelection(None))


class AuthDialog:
    """Applies panel transitions and reports the outcome to ``on_select``."""

    def __init__(
        self,
        settings: LoadedSettings,
        on_select: Callable[[AuthType | None, SettingScope], None],
        initial_error_message: str | None = None,
        environ: MutableMapping[str, str] | None = None,
        env_file: Path | None = None,
    ):
        self._settings = settings
        self._env_file = env_file
        self._on_select = on_select
        self._environ = os.environ if environ is None else environ
        self.items = [(AUTH_LABELS[auth_type], auth_type) for auth_type in AuthType]
        self.state = initial_state(initial_error_message)
        self.completed = False

    @property
    def initial_index(self) -> int:
        preferred = default_auth_type(self._settings.merged, self._environ)
        for index, (_, value) in enumerate(self.items):
            if value == preferred:
                return index
        return 0

    @property
    def is_capturing(self) -> bool:
        return self.state.mode is DialogMode.CAPTURING_CREDENTIAL

    @property
    def error_message(self) -> str | None:
        return self.state.error_message

    def select(self, auth_method: AuthType | str) -> None:
        self._apply(select_method(self.state, auth_method, self._environ))

    def submit_credentials(self, values: Mapping[str, str]) -> None:
        if not self.is_capturing:
            return
        apply_credentials(self.state.capturing, values, self._environ, self._env_file)
        self._apply(submit_credentials(self.state))

    def cancel_credentials(self) -> None:
        self._apply(cancel_credentials(self.state))

    def escape(self) -> None:
        current = self._settings.merged.selected_auth_type
        self._apply(press_escape(self.state, current))

    def _apply(self, transition: Transition) -> None:
        if transition.state != self.state:
            logger.debug("Auth dialog %s -> %s", self.state.mode.value, transition.state.mode.value)
        self.state = transition.state
        if transition.selection is not None:
            self.completed = True
            self._on_select(transition.selection.auth_type, transition.selection.scope)

    def render(self) -> str:
        """Render the selection list as terminal text."""
        lines = [
            click.style("Get started", bold=True),
            "",
            "How would you like to authenticate for this project?",
            "",
        ]
        highlighted = self.initial_index
        for index, (label, _) in enumerate(self.items):
            marker = click.style("●", fg="green") if index == highlighted else "○"
            lines.append(f"  {marker} {index + 1}. {label}")
        if self.state.error_message:
            lines.extend(["", click.style(self.state.error_message, fg="red")])
        lines.extend(["", click.style("(Use Enter to Set Auth, 'esc' to close)", fg="magenta")])
        return "\n".join(lines)


def run_auth_dialog(
    dialog: AuthDialog,
    prompt: Callable[..., str] = click.prompt,
    echo: Callable[..., None] = click.echo,
) -> None:
    """Drive ``dialog`` from line-oriented terminal input until it completes.

    Ctrl+C raises ``click.Abort`` out of the prompt, which ends the loop.
    """
    while not dialog.completed:
        if dialog.is_capturing:
            values = prompt_credentials(dialog.state.capturing, prompt=prompt, echo=echo)
            if values is None:
                dialog.cancel_credentials()
            else:
                dialog.submit_credentials(values)
            continue

        echo(dialog.render())
        choice = prompt("Select", default=str(dialog.initial_index + 1)).strip().lower()
        if choice in CANCEL_WORDS:
            dialog.escape()
        elif choice.isdigit() and 1 <= int(choice) <= len(dialog.items):
            dialog.select(dialog.items[int(choice) - 1][1])
        else:
            echo(click.style(f"Invalid choice: {choice}", fg="red"))
