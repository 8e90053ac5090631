"""Command-line interface for feedpublish.

Provides commands for:
- publish: Upload a package to a feed source
- sources: List, remember and select feed sources
- key: Store API keys per feed source
- config: Show or create the settings file
"""

import asyncio
import logging
from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from feedpublish import __version__
from feedpublish.config.loader import (
    DEFAULT_SETTINGS_PATH,
    SettingsManager,
    save_settings,
)
from feedpublish.credentials import FileCredentialStore
from feedpublish.exceptions import FeedPublishError, PublishError
from feedpublish.package import PackageArtifact
from feedpublish.session import PublishSession, SessionState
from feedpublish.sources import RecentSourceManager, same_source

app = typer.Typer(
    name="feedpublish",
    help="Publish packages to remembered feed sources",
    add_completion=False,
    no_args_is_help=True,
)
sources_app = typer.Typer(help="Manage remembered feed sources", no_args_is_help=True)
key_app = typer.Typer(help="Manage API keys per feed source", no_args_is_help=True)
config_app = typer.Typer(help="Inspect the settings file", no_args_is_help=True)
app.add_typer(sources_app, name="sources")
app.add_typer(key_app, name="key")
app.add_typer(config_app, name="config")

# Rich console for formatted output
console = Console()

CONFIG_OPTION_HELP = f"Settings file (default: {DEFAULT_SETTINGS_PATH})"


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich, DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def mask_key(api_key: str) -> str:
    """Show only the first four characters of a key."""
    if not api_key:
        return ""
    if len(api_key) <= 4:
        return "*" * len(api_key)
    return api_key[:4] + "*" * (len(api_key) - 4)


def fail(error: FeedPublishError) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    return typer.Exit(code=error.exit_code)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"feedpublish version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(  # noqa: B008
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Publish packages to remembered feed sources.

    Remembers the feeds you publish to, the API key used with each of them,
    and which protocol (V1 push or V2 publish) you used last.
    """
    pass


def run_with_progress(session: PublishSession) -> SessionState:
    """Run one publish attempt, rendering upload progress."""
    package = session.package
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task(
            f"Publishing {package.id} {package.version}", total=100
        )

        def on_progress(percent: int) -> None:
            progress.update(task_id, completed=percent)

        return asyncio.run(session.run(on_progress))


@app.command()
def publish(
    package: Path = typer.Argument(  # noqa: B008
        ...,
        help="Package file to publish",
    ),
    source: str | None = typer.Option(  # noqa: B008
        None,
        "--source",
        "-s",
        help="Feed source URL (default: the last one used)",
    ),
    api_key: str | None = typer.Option(  # noqa: B008
        None,
        "--api-key",
        "-k",
        help="API key (default: the key stored for the source)",
    ),
    use_v1: bool | None = typer.Option(  # noqa: B008
        None,
        "--v1/--v2",
        help="Protocol variant (default: the one used last)",
    ),
    package_id: str | None = typer.Option(  # noqa: B008
        None,
        "--id",
        help="Package id (default: inferred from the file name)",
    ),
    package_version: str | None = typer.Option(  # noqa: B008
        None,
        "--package-version",
        help="Package version (default: inferred from the file name)",
    ),
    config: Path | None = typer.Option(  # noqa: B008
        None,
        "--config",
        "-c",
        help=CONFIG_OPTION_HELP,
    ),
    verbose: bool = typer.Option(  # noqa: B008
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
) -> None:
    """Upload PACKAGE to a feed source.

    Examples:
        feedpublish publish MyLib.1.2.0.nupkg
        feedpublish publish MyLib.1.2.0.nupkg -s https://feed.example/api/v2 --v2
        feedpublish publish dist/mylib-1.2.0.tar.gz --id mylib -k $API_KEY
    """
    configure_logging(verbose)
    try:
        manager = SettingsManager.load(config)
        sources = RecentSourceManager.from_settings(manager.settings)
        if source:
            sources.active_source = source
        credentials = FileCredentialStore(manager.settings.credentials_file)
        artifact = PackageArtifact.from_path(package, package_id, package_version)

        session = PublishSession(
            artifact, sources, credentials, manager, use_v1_protocol=use_v1
        )
        try:
            if api_key:
                session.api_key = api_key
            if not session.api_key:
                console.print(
                    f"[yellow]No API key stored for {session.publish_url}; "
                    "publishing without one[/yellow]"
                )
            state = run_with_progress(session)
        finally:
            sources.save_to(manager.settings)
            session.close()
            artifact.close()

    except FeedPublishError as e:
        raise fail(e) from None

    if state is SessionState.FAILED:
        console.print(f"[red]Error:[/red] {escape(session.status)}")
        raise typer.Exit(code=PublishError.exit_code)
    console.print(f"[green]{escape(session.status)}[/green]")


@sources_app.command("list")
def sources_list(
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """List remembered feed sources, most recent first."""
    try:
        manager = SettingsManager.load(config)
    except FeedPublishError as e:
        raise fail(e) from None

    sources = RecentSourceManager.from_settings(manager.settings)
    if not len(sources):
        console.print("[yellow]No feed sources remembered yet[/yellow]")
        return

    table = Table(title="Feed Sources")
    table.add_column("Active", style="bold", width=6)
    table.add_column("Source", style="cyan")
    for item in sources:
        marker = "[green]*[/green]" if same_source(item, sources.active_source) else ""
        table.add_row(marker, item)
    console.print(table)


@sources_app.command("add")
def sources_add(
    url: str = typer.Argument(..., help="Feed source URL"),  # noqa: B008
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """Remember a feed source, moving it to the top of the list."""
    try:
        manager = SettingsManager.load(config)
        sources = RecentSourceManager.from_settings(manager.settings)
        sources.add(url)
        sources.save_to(manager.settings)
        manager.save()
    except FeedPublishError as e:
        raise fail(e) from None
    console.print(f"[green]Remembered[/green] {url}")


@sources_app.command("use")
def sources_use(
    url: str = typer.Argument(..., help="Feed source URL"),  # noqa: B008
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """Select the feed source used by default for the next publish."""
    try:
        manager = SettingsManager.load(config)
        sources = RecentSourceManager.from_settings(manager.settings)
        sources.active_source = url
        sources.save_to(manager.settings)
        manager.save()
    except FeedPublishError as e:
        raise fail(e) from None
    console.print(f"[green]Active source:[/green] {url}")


@key_app.command("set")
def key_set(
    url: str = typer.Argument(..., help="Feed source URL"),  # noqa: B008
    api_key: str = typer.Argument(..., help="API key"),  # noqa: B008
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """Store the API key for a feed source."""
    try:
        manager = SettingsManager.load(config)
        FileCredentialStore(manager.settings.credentials_file).write(url, api_key)
    except FeedPublishError as e:
        raise fail(e) from None
    console.print(f"[green]Stored key for[/green] {url}")


@key_app.command("show")
def key_show(
    url: str = typer.Argument(..., help="Feed source URL"),  # noqa: B008
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """Show the stored API key for a feed source, masked."""
    try:
        manager = SettingsManager.load(config)
        stored = FileCredentialStore(manager.settings.credentials_file).read(url)
    except FeedPublishError as e:
        raise fail(e) from None

    if not stored:
        console.print(f"[yellow]No key stored for[/yellow] {url}")
        raise typer.Exit(code=1)
    console.print(mask_key(stored))


@config_app.command("show")
def config_show(
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
    write: bool = typer.Option(  # noqa: B008
        False,
        "--write",
        help="Write the effective settings to the settings file",
    ),
) -> None:
    """Print the effective settings as YAML."""
    try:
        manager = SettingsManager.load(config)
        if write:
            written = save_settings(manager.settings, manager.path)
            console.print(f"[green]Settings written to:[/green] {written}")
    except FeedPublishError as e:
        raise fail(e) from None

    console.print(
        yaml.safe_dump(manager.settings.model_dump(mode="json"), sort_keys=False),
        highlight=False,
        markup=False,
    )


if __name__ == "__main__":
    app()
