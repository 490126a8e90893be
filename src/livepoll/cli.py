"""livepoll CLI entry point."""

import logging
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from livepoll.config import WatchConfiguration

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def directory_table(dirs: tuple[Path, ...]) -> Table:
    """Summarise the watched directories."""
    table = Table(title="Watched directories")
    table.add_column("Path", style="cyan")
    table.add_column("Resolved")
    table.add_column("Exists")

    for path in dirs:
        exists = path.is_dir()
        table.add_row(
            str(path),
            str(path.resolve()),
            "[green]yes[/green]" if exists else "[red]no[/red]",
        )
    return table


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """livepoll - reload browser pages when files change."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("dirs", nargs=-1, type=click.Path(path_type=Path))
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
@click.option(
    "--poll-timeout",
    type=float,
    default=30.0,
    show_default=True,
    help="Seconds before a held reload poll is answered",
)
@click.option(
    "--graceful-timeout",
    type=float,
    default=5.0,
    show_default=True,
    help="Seconds to wait for open connections on shutdown",
)
@click.option("--force-polling", is_flag=True, help="Poll the filesystem instead of native events")
@click.option("--disable", is_flag=True, help="Serve without file watching")
def serve(
    dirs: tuple[Path, ...],
    host: str,
    port: int,
    poll_timeout: float,
    graceful_timeout: float,
    force_polling: bool,
    disable: bool,
) -> None:
    """Serve the demo page, reloading it when files in DIRS change."""
    import uvicorn

    from livepoll.api import create_app

    try:
        config = WatchConfiguration(
            target_dirs=dirs or (Path("."),),
            enabled=not disable,
            poll_timeout=poll_timeout,
            force_polling=force_polling or None,
        )
    except ValidationError as e:
        console.print(f"[red]✗[/red] Invalid options: {e}")
        raise SystemExit(1) from e

    if config.enabled:
        console.print(directory_table(config.target_dirs))
    else:
        console.print("[yellow]File watching disabled[/yellow]")

    console.print(f"[bold green]Starting livepoll demo on {host}:{port}[/bold green]")
    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_config=None,
        timeout_graceful_shutdown=graceful_timeout,
    )


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
