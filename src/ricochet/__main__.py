"""CLI entry point for Ricochet."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ricochet import __version__
from ricochet.config import Config, ConfigError, load_config
from ricochet.context.manager import ContextManager, ContextResult
from ricochet.context.messages import Message
from ricochet.models.summarizer import build_summarizer


def _load_transcript(path: Path) -> list[Message]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid transcript JSON in {path}: {e}") from e
    if isinstance(data, dict):
        data = data.get("messages", [])
    if not isinstance(data, list):
        raise click.ClickException("Transcript must be a JSON list of messages.")
    try:
        return [Message.from_dict(item) for item in data]
    except (AttributeError, ValueError) as e:
        raise click.ClickException(f"Invalid message in {path}: {e}") from e


def _render(console: Console, before: int, result: ContextResult, show_indicator: bool) -> None:
    table = Table(title="Context window", show_header=False)
    table.add_column("metric", style="bold")
    table.add_column("value")
    table.add_row("Messages", f"{before} -> {len(result.messages)}")
    table.add_row("Tokens", f"{result.tokens_used:,} / {result.tokens_max:,}")
    table.add_row("Usage", f"{result.percentage:.1f}%")
    table.add_row("Condensed", "yes" if result.was_condensed else "no")
    table.add_row("Truncated", "yes" if result.was_truncated else "no")
    if result.error is not None:
        table.add_row("Condense error", f"[red]{result.error}[/red]")
    console.print(table)
    if result.summary:
        console.print("[bold]Summary[/bold]")
        console.print(result.summary)
    if show_indicator:
        console.print(f"[dim]{result.indicator()}[/dim]")


@click.group()
@click.version_option(version=__version__, prog_name="ricochet")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to ricochet.toml configuration file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Ricochet - context window management for coding agents."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    level = logging.DEBUG if verbose else getattr(logging, config.logging.level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.argument("transcript", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--system-prompt-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="File holding the system prompt sent with the transcript.",
)
@click.option("--max-tokens", type=int, default=None, help="Override the context window size.")
@click.option(
    "--summarize/--no-summarize",
    default=False,
    help="Condense with the configured summarizer model.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_context
def inspect(
    ctx: click.Context,
    transcript: Path,
    system_prompt_file: Path | None,
    max_tokens: int | None,
    summarize: bool,
    as_json: bool,
) -> None:
    """Run context management over a saved transcript."""
    config: Config = ctx.obj["config"]
    budget = config.budget
    if max_tokens is not None:
        if max_tokens <= 0:
            raise click.BadParameter("must be positive", param_hint="--max-tokens")
        budget = replace(budget, max_tokens=max_tokens)

    messages = _load_transcript(transcript)
    system_prompt = ""
    if system_prompt_file is not None:
        system_prompt = system_prompt_file.read_text(encoding="utf-8")

    summarizer = build_summarizer(config.summarizer) if summarize else None
    if summarize and summarizer is None:
        raise click.ClickException("No summarizer configured in [summarizer].")

    manager = ContextManager(
        budget=budget,
        settings=config.context,
        summarizer=summarizer,
        condense_timeout_seconds=config.summarizer.timeout_seconds,
    )

    async def _run() -> ContextResult:
        try:
            return await manager.manage(messages, system_prompt)
        finally:
            if summarizer is not None:
                await summarizer.provider.aclose()

    result = asyncio.run(_run())

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return
    _render(Console(), len(messages), result, config.context.show_context_indicator)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
