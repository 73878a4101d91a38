"""Config commands for cookiesmith CLI."""

import typer

from cookiesmith.config import ConfigError, get_config_path, load_config

app = typer.Typer(
    name="config",
    help="Show cookiesmith configuration.",
)


@app.command()
def show() -> None:
    """Show current configuration."""
    config_path = get_config_path()
    typer.echo(f"config_file: {config_path}")
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(2) from e
    typer.echo(f"browsers: {', '.join(cfg.cookies.browsers) or 'all'}")
    typer.echo(f"profile: {cfg.cookies.profile}")
    timeout = cfg.cookies.timeout
    typer.echo(f"timeout: {timeout if timeout is not None else 'none'}")
