"""Thin CLI wrapper for coverage_shortcuts.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console

from coverage_shortcuts import __version__
from coverage_shortcuts.config import get_settings, print_settings_json

if TYPE_CHECKING:
    from coverage_shortcuts.builds.store import BuildStore
    from coverage_shortcuts.ci.client import CIClient

app = typer.Typer(
    name="covshort",
    help="Coverage Shortcuts - stable links to CI coverage reports",
    no_args_is_help=True,
)
console = Console()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"coverage-shortcuts version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Coverage Shortcuts - stable links to CI coverage reports."""
    logging.basicConfig(level=get_settings().log_level, format=LOG_FORMAT)


def _print_json(data: object) -> None:
    """Print JSON unwrapped and without markup so it stays parseable."""
    console.print(
        json.dumps(data, indent=2), soft_wrap=True, markup=False, highlight=False
    )


def _open_store() -> "BuildStore":
    """Open the configured build store, creating tables if needed."""
    from coverage_shortcuts.builds.store import BuildStore

    return BuildStore.from_url(get_settings().db_url)


def _open_client() -> "CIClient":
    """Create a CI client from the configured settings."""
    from coverage_shortcuts.ci.client import CIClient

    return CIClient.from_settings(get_settings())


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(
            print_settings_json(settings), soft_wrap=True, markup=False, highlight=False
        )
    else:
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Storage:[/bold]")
        console.print(f"  Database URL:        {settings.db_url}")
        console.print()
        console.print("[bold]CI provider:[/bold]")
        console.print(f"  API URL:             {settings.ci_base_url}")
        console.print(
            f"  API token:           {'(set)' if settings.ci_token else '(not set)'}"
        )
        console.print(f"  GitHub repository:   {settings.github_repo}")
        console.print(f"  Request timeout:     {settings.request_timeout}")
        console.print()
        console.print("[bold]Synchronization:[/bold]")
        console.print(f"  Retention (days):    {settings.retention_days}")
        console.print(f"  Refresh interval:    {settings.refresh_interval}")
        console.print(f"  Page size:           {settings.page_size}")
        console.print(f"  Allow bootstrap:     {settings.allow_bootstrap}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Log level:           {settings.log_level}")


@app.command()
def refresh(
    bootstrap: Annotated[
        bool,
        typer.Option(
            "--bootstrap/--no-bootstrap",
            help="Allow bootstrapping an empty ledger",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Bring the build ledger up to date once."""
    from coverage_shortcuts.builds.refresh import (
        BootstrapRequiredError,
        ConsistencyError,
        refresh_ledger,
    )
    from coverage_shortcuts.builds.store import StoreError
    from coverage_shortcuts.ci.client import CIClientError

    settings = get_settings()
    store = _open_store()

    with _open_client() as client:
        try:
            result = refresh_ledger(
                store,
                client,
                allow_bootstrap=bootstrap,
                retention_days=settings.retention_days,
                page_size=settings.page_size,
            )
        except BootstrapRequiredError as e:
            console.print(f"[red]{e}[/red]")
            console.print("Run again with --bootstrap to populate the ledger.")
            raise typer.Exit(code=1) from None
        except (CIClientError, StoreError, ConsistencyError) as e:
            console.print(f"[red]Refresh failed ({e.code}): {e}[/red]")
            raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "mode": result.mode.value,
            "ingested": result.ingested,
            "cursor": result.cursor,
            "reached_retention_boundary": result.reached_retention_boundary,
        }
        _print_json(output)
    else:
        console.print(
            f"[green]{result.mode.value.capitalize()} refresh complete:[/green] "
            f"{result.ingested} builds ingested"
        )


@app.command()
def archive() -> None:
    """Cache the artifacts of every finished, unarchived build."""
    from coverage_shortcuts.sync.loops import ArtifactArchiver
    from coverage_shortcuts.sync.signal import WakeSignal

    store = _open_store()
    with _open_client() as client:
        archiver = ArtifactArchiver(store, client, WakeSignal())
        count = archiver.drain()

    console.print(f"Archived {count} build(s)")
    remaining = store.get_archivable_build()
    if remaining is not None:
        console.print(
            f"[yellow]Stopped early; build {remaining.build_num} is still "
            "archivable (see log)[/yellow]"
        )
        raise typer.Exit(code=1)


builds_app = typer.Typer(help="Inspect the build ledger")
app.add_typer(builds_app, name="builds")


@builds_app.command("show")
def builds_show(
    build_num: Annotated[int, typer.Argument(help="Build number to show")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show a build from the ledger."""
    store = _open_store()
    build = store.get_build(build_num)
    if build is None:
        console.print(f"[red]Build not found: {build_num}[/red]")
        raise typer.Exit(code=1)

    if json_output:
        _print_json(build.to_dict())
        return

    console.print(f"[bold]Build {build.build_num}[/bold]")
    console.print(f"  URL:       {build.url}")
    console.print(f"  Branch:    {build.branch}")
    console.print(f"  Subject:   {build.subject}")
    console.print(f"  Commit:    {build.commit}")
    console.print(f"  Workflow:  {build.workflow or '-'}")
    console.print(f"  Started:   {build.start_time or '-'}")
    console.print(f"  Outcome:   {build.outcome or '(running)'}")
    console.print(f"  Archived:  {build.archived}")


@builds_app.command("unarchived")
def builds_unarchived(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List builds whose artifacts are not cached yet."""
    store = _open_store()
    builds = store.unarchived_builds()

    if json_output:
        _print_json([b.to_dict() for b in builds])
        return

    if not builds:
        console.print("[green]All builds are archived[/green]")
        return

    console.print(f"[bold]{len(builds)} unarchived build(s):[/bold]")
    for b in builds:
        state = b.outcome or "running"
        console.print(f"  {b.build_num}  {b.branch}  [dim]{state}[/dim]")


@builds_app.command("artifacts")
def builds_artifacts(
    build_num: Annotated[int, typer.Argument(help="Build number")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List a build's artifacts, using the cache when the build is archived."""
    from coverage_shortcuts.builds.cache import get_artifacts_with_cache
    from coverage_shortcuts.ci.client import CIClientError

    store = _open_store()
    build = store.get_build(build_num)
    if build is None:
        console.print(f"[red]Build not found: {build_num}[/red]")
        raise typer.Exit(code=1)

    with _open_client() as client:
        try:
            artifacts = get_artifacts_with_cache(store, client, build)
        except CIClientError as e:
            console.print(f"[red]Failed to fetch artifacts ({e.code}): {e}[/red]")
            raise typer.Exit(code=1) from None

    if json_output:
        _print_json([a.to_dict() for a in artifacts])
        return

    console.print(f"[bold]{len(artifacts)} artifact(s) for build {build_num}:[/bold]")
    for a in artifacts:
        console.print(f"  {a.url}")


@app.command()
def pull(
    pull_number: Annotated[int, typer.Argument(help="Pull request number")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the newest coverage report links for a pull request."""
    from coverage_shortcuts.builds.store import StoreError
    from coverage_shortcuts.ci.client import CIClientError
    from coverage_shortcuts.coverage import COVERAGE_REPORTS, find_coverage_links

    store = _open_store()
    with _open_client() as client:
        try:
            links = find_coverage_links(store, client, pull_number)
        except (CIClientError, StoreError) as e:
            console.print(f"[red]Lookup failed ({e.code}): {e}[/red]")
            raise typer.Exit(code=1) from None

    if json_output:
        _print_json({"pull": pull_number, "reports": links})
        return

    console.print(f"[bold]Coverage reports for pull/{pull_number}:[/bold]")
    for report in COVERAGE_REPORTS:
        url = links.get(report.name)
        if url is None:
            console.print(f"  {report.name:<10} [dim](not ready)[/dim]")
        else:
            console.print(f"  {report.name:<10} {url}{report.fragment}")


@app.command()
def serve(
    host: Annotated[
        str,
        typer.Option("--host", "-h", help="Address to bind"),
    ] = "127.0.0.1",
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Port to listen on"),
    ] = 8000,
) -> None:
    """Run the web server and the background sync loops."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "web.app:app",
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
