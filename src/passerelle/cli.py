"""
Point d'entrée CLI pour PASSERELLE.

Usage:
    passerelle serve
    passerelle serve --port 3000 --host 127.0.0.1
    passerelle --version
"""

import shutil
import sys

import click
from rich.console import Console

from . import __version__
from .config import LOG_LEVELS, config
from .logging_utils import configure_logging

console = Console(stderr=True)

ORANGE = "#FF7000"


@click.group(invoke_without_command=True)
@click.option(
    "--version", "-v",
    is_flag=True,
    help="Affiche la version",
)
@click.pass_context
def main(ctx: click.Context, version: bool) -> None:
    """
    PASSERELLE - Passerelle HTTP vers le CLI Claude.

    \b
    Sous-commandes:
        passerelle serve                 # Lance le serveur HTTP
    """
    if ctx.invoked_subcommand is not None:
        return

    if version:
        console.print(f"PASSERELLE v{__version__}")
        return

    click.echo(ctx.get_help())


@main.command()
@click.option("--port", "-p", type=int, default=None, help="Port du serveur (défaut: PORT)")
@click.option("--host", default=None, help="Host du serveur (défaut: HOST)")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS),
    default=None,
    help="Niveau de log (défaut: LOG_LEVEL)",
)
def serve(port: int | None, host: str | None, log_level: str | None):
    """Lance le serveur HTTP API."""
    if port is not None:
        config.port = port
    if host is not None:
        config.host = host
    if log_level is not None:
        config.log_level = log_level  # type: ignore[assignment]

    try:
        config.validate()
    except ValueError as e:
        console.print(f"[bold red]Erreur:[/] {e}", style="red")
        sys.exit(1)

    configure_logging(config.log_level)

    if shutil.which(config.claude_binary) is None:
        console.print(
            f"[yellow]Attention:[/] '{config.claude_binary}' introuvable dans le PATH.\n"
            "Les invocations échoueront tant que le CLI Claude n'est pas installé.",
        )

    url = f"http://{config.host}:{config.port}"
    console.print(f"\n[bold {ORANGE}]Serveur PASSERELLE[/] démarré\n")
    console.print(f"  URL:     {url}")
    console.print(f"  API:     {url}/v1/chat")
    if config.ollama_api_enabled:
        console.print(f"  Ollama:  {url}/api/chat")
        console.print(f"  OpenAI:  {url}/v1/chat/completions")
    console.print(f"  Timeout: {config.claude_timeout_ms}ms")
    console.print("\n[dim]Ctrl+C pour arrêter[/]")

    import uvicorn

    from .http import create_app

    app = create_app(config)
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="warning" if config.log_level == "warn" else config.log_level,
    )


if __name__ == "__main__":
    main()
