"""cookiesmith CLI main entry point."""

import sys

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cookiesmith import __version__
from cookiesmith.auth.cookies import get_cookies, to_cookie_header
from cookiesmith.auth.paths import get_browser_configs
from cookiesmith.cli import config
from cookiesmith.config import Config, ConfigError, load_config

app = typer.Typer(
    name="cookiesmith",
    help="Read authentication cookies from locally installed browsers.",
)

app.add_typer(config.app, name="config")

console = Console()
err_console = Console(stderr=True)


def setup_logging(debug: bool) -> None:
    """Send log output to stderr, verbosely when debugging."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "WARNING")


def load_config_or_exit() -> Config:
    """Load configuration, exiting with a usage error if it is invalid."""
    try:
        return load_config()
    except ConfigError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(2) from e


@app.command()
def header(
    url: str = typer.Argument(..., help="Site whose cookies should be read."),
    names: list[str] = typer.Option(
        [], "--name", "-n", help="Cookie name to keep (repeatable). Default: all."
    ),
    browsers: list[str] = typer.Option(
        [], "--browser", "-b", help="Browser to read from (repeatable). Default: all."
    ),
    profile: str | None = typer.Option(None, "--profile", "-p", help="Chromium profile."),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait for each browser."
    ),
    debug: bool = typer.Option(False, "--debug", help="Log extraction details to stderr."),
) -> None:
    """Print a Cookie header for a site."""
    cfg = load_config_or_exit()
    setup_logging(debug or cfg.debug)

    try:
        result = get_cookies(
            url,
            names=names,
            browsers=browsers or cfg.cookies.browsers,
            timeout=timeout if timeout is not None else cfg.cookies.timeout,
            profile=profile or cfg.cookies.profile,
        )
    except ValueError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(2) from e

    for warning in result.warnings:
        err_console.print(f"[yellow]warning:[/yellow] {escape(warning)}", highlight=False)

    cookies = result.non_empty()
    if not cookies:
        err_console.print(f"[red]No cookies found for {escape(url)}[/red]")
        raise typer.Exit(1)

    typer.echo(to_cookie_header(cookies))


@app.command()
def browsers(
    profile: str | None = typer.Option(None, "--profile", "-p", help="Chromium profile."),
) -> None:
    """List browser cookie databases found on this machine."""
    cfg = load_config_or_exit()
    configs = get_browser_configs(profile=profile or cfg.cookies.profile)
    if not configs:
        typer.echo("No supported browsers found.")
        return

    table = Table(title="Browser cookie databases")
    table.add_column("Browser")
    table.add_column("Cookies database")
    for browser_config in configs:
        table.add_row(str(browser_config.name), str(browser_config.cookies_path))
    console.print(table)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        is_eager=True,
    ),
) -> None:
    """cookiesmith - reuse your browser's logged-in sessions."""
    if version:
        typer.echo(f"cookiesmith version {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


if __name__ == "__main__":
    app()
