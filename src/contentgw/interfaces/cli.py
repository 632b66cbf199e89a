"""CLI interface for contentgw using Click."""

from __future__ import annotations

import asyncio
import logging

import click
from dotenv import load_dotenv

from contentgw.core.auth import AUTH_LABELS, AuthType, parse_auth_type
from contentgw.core.config import LoadedSettings, SettingScope, get_project_root, load_settings
from contentgw.interfaces.auth_dialog import AuthDialog, run_auth_dialog
from contentgw.llm.base import ContentGenerator
from contentgw.llm.errors import ContentGeneratorError
from contentgw.llm.factory import create_content_generator, create_content_generator_config
from contentgw.llm.types import (
    CountTokensRequest,
    EmbedContentRequest,
    GenerateContentRequest,
)
from contentgw.telemetry import ui_telemetry_service

logger = logging.getLogger(__name__)


def _load_env():
    """Load .env file if it exists."""
    load_dotenv(get_project_root() / ".env")


class AppContext:
    """Holds loaded settings and builds the configured generator."""

    def __init__(self):
        _load_env()
        self.settings: LoadedSettings = load_settings()

    def generator(self, auth_type: str | None = None) -> ContentGenerator:
        selected = parse_auth_type(auth_type) or self.settings.merged.selected_auth_type
        if selected is None:
            raise click.ClickException("No auth method selected. Run 'contentgw auth' first.")
        try:
            config = create_content_generator_config(self.settings.merged, selected)
        except ValueError as e:
            raise click.ClickException(str(e)) from e
        return create_content_generator(config)


@click.group()
@click.version_option(version="0.1.0", prog_name="contentgw")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """contentgw - provider-neutral content generation"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
def auth():
    """Choose how to authenticate and save the choice."""
    ctx = AppContext()
    outcome: dict = {}

    def on_select(auth_type: AuthType | None, scope: SettingScope) -> None:
        outcome["auth_type"] = auth_type
        outcome["scope"] = scope

    run_auth_dialog(AuthDialog(ctx.settings, on_select, env_file=get_project_root() / ".env"))

    auth_type = outcome.get("auth_type")
    if auth_type is None:
        click.echo("Authentication unchanged.")
        return
    ctx.settings.set_value(outcome["scope"], "selected_auth_type", auth_type)
    click.echo(f"Authenticated with {AUTH_LABELS[auth_type]} ({outcome['scope'].value} settings).")


@cli.command()
@click.argument("prompt")
@click.option("--auth-type", "-a", type=click.Choice([t.value for t in AuthType]), default=None)
@click.option("--model", "-m", default=None, help="Override the model")
@click.option("--stream/--no-stream", default=True, help="Stream the response")
def generate(prompt: str, auth_type: str | None, model: str | None, stream: bool):
    """Send one prompt and print the response."""
    ctx = AppContext()
    generator = ctx.generator(auth_type)
    request = GenerateContentRequest(contents=prompt, model=model)
    try:
        asyncio.run(_generate(generator, request, stream))
    except ContentGeneratorError as e:
        raise click.ClickException(str(e)) from e

    for name, metrics in ui_telemetry_service.get_metrics().models.items():
        logger.debug(
            "%s: %d requests, %d errors, %d tokens, %.0f ms average",
            name,
            metrics.total_requests,
            metrics.total_errors,
            metrics.total_tokens,
            metrics.average_latency_ms,
        )


async def _generate(generator: ContentGenerator, request: GenerateContentRequest, stream: bool):
    if not stream:
        response = await generator.generate_content(request)
        click.echo(response.text)
        for call in response.function_calls:
            click.echo(f"[function call] {call.name}({call.args})")
        return

    fragments = await generator.generate_content_stream(request)
    async for fragment in fragments:
        click.echo(fragment.text, nl=False)
    click.echo()


@cli.command()
@click.argument("texts", nargs=-1, required=True)
@click.option("--auth-type", "-a", type=click.Choice([t.value for t in AuthType]), default=None)
def embed(texts: tuple[str, ...], auth_type: str | None):
    """Embed each TEXT and print the vector sizes."""
    ctx = AppContext()
    generator = ctx.generator(auth_type)
    try:
        response = asyncio.run(generator.embed_content(EmbedContentRequest(contents=list(texts))))
    except ContentGeneratorError as e:
        raise click.ClickException(str(e)) from e
    for text, embedding in zip(texts, response.embeddings):
        click.echo(f"{len(embedding.values):>6}  {text[:60]}")


@cli.command()
@click.argument("prompt")
@click.option("--auth-type", "-a", type=click.Choice([t.value for t in AuthType]), default=None)
def tokens(prompt: str, auth_type: str | None):
    """Report the token count for PROMPT (providers may return a placeholder)."""
    ctx = AppContext()
    generator = ctx.generator(auth_type)
    response = asyncio.run(generator.count_tokens(CountTokensRequest(contents=prompt)))
    click.echo(response.total_tokens)
