"""CLI entry point for pplx-agent."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from prompt_toolkit import prompt as toolkit_prompt
from pydantic import ValidationError
from rich.console import Console

from pplx_agent import __version__
from pplx_agent.client import ChatClient
from pplx_agent.commands import build_registry
from pplx_agent.config import AgentConfig, configure_logging, write_default_config
from pplx_agent.exceptions import ConfigError
from pplx_agent.interactive import InteractiveSession
from pplx_agent.persistence import Stores
from pplx_agent.session import SessionContext
from pplx_agent.settings import SettingsStore
from pplx_agent.ui import apply_color_scheme, print_error, print_success, print_warning

app = typer.Typer(
    name="pplx",
    help="Interactive terminal assistant for the Perplexity chat API.",
    no_args_is_help=False,
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"pplx-agent version {__version__}")
        raise typer.Exit()


def _load_config(path: Path | None, log_level: str | None) -> AgentConfig:
    config = AgentConfig.from_file(path or AgentConfig.default_path())
    if log_level is None:
        return config
    try:
        return AgentConfig.model_validate({**config.model_dump(), "log_level": log_level})
    except ValidationError as e:
        raise ConfigError(f"Invalid log level: {log_level}", {"errors": e.error_count()}) from None


@app.command()
def main(
    root: Annotated[
        Path | None,
        typer.Argument(help="Project root (default: current directory)", show_default=False),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Config file path (default: ~/.config/pplx/config.toml)"),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level (debug, info, warning, error, critical)"),
    ] = None,
    init_config: Annotated[
        bool,
        typer.Option("--init-config", help="Write a default config file and exit"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Start the interactive assistant in ROOT."""
    if init_config:
        target = config_path or AgentConfig.default_path()
        if target.exists():
            print_warning(console, f"Config already exists: {target}")
        else:
            write_default_config(target)
            print_success(console, f"Wrote {target}")
        raise typer.Exit()

    try:
        config = _load_config(config_path, log_level)
    except ConfigError as e:
        print_error(console, e.message)
        raise typer.Exit(1) from None
    configure_logging(config)

    state_dir = config.resolve_state_dir()
    settings_store = SettingsStore.in_dir(state_dir)
    settings = settings_store.load()
    apply_color_scheme(settings.color_scheme)

    try:
        api_key = config.get_api_key()
    except ConfigError:
        print_error(console, f"Missing {config.api_key_env}")
        console.print(f"[dim]Set it: export {config.api_key_env}=your_key[/dim]")
        raise typer.Exit(1) from None

    project_root = (root or Path.cwd()).expanduser().resolve()
    if not project_root.is_dir():
        print_error(console, f"Not a directory: {project_root}")
        raise typer.Exit(1)

    client = ChatClient(api_key, base_url=config.api_base_url, timeout=config.timeout)
    stores = Stores.in_dir(state_dir)
    ctx = SessionContext(
        settings=settings,
        root=project_root,
        console=console,
        client=client,
        stores=stores,
        settings_store=settings_store,
        ask=lambda message: toolkit_prompt(message),
        brain=stores.brain.load(project_root),
    )
    ctx.registry = build_registry()

    try:
        InteractiveSession(ctx, history_file=config.resolve_history_file()).run()
    finally:
        client.close()


if __name__ == "__main__":
    app()
