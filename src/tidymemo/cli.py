"""Command-line interface for tidymemo."""

import asyncio
import json
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from loguru import logger

from tidymemo.config import resolve_data_directory
from tidymemo.core import topics
from tidymemo.feedback import CATEGORIES, submit_feedback
from tidymemo.logging_config import configure_logging
from tidymemo.models.document import Document, Topic
from tidymemo.models.identity import Identity
from tidymemo.session import FileSession
from tidymemo.storage.local import LocalCache
from tidymemo.storage.remote import RemoteStore
from tidymemo.sync.reconciler import Reconciler

app = typer.Typer(help="tidymemo: local-first notes and checklists.")

T = TypeVar("T")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Local cache directory"),
]
JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _remote_for(identity: Identity | None) -> RemoteStore | None:
    if identity is None:
        return None
    try:
        return RemoteStore()
    except RuntimeError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e


def _run(data_dir: Path | None, action: Callable[[Reconciler], T]) -> T:
    """Load the document, apply ``action``, and wait for remote writes to finish."""
    identity = FileSession().current_identity()
    remote = _remote_for(identity)
    cache = LocalCache.open(data_dir or resolve_data_directory())

    async def run() -> T:
        reconciler = Reconciler(cache, remote, identity)
        await reconciler.load()
        result = action(reconciler)
        await reconciler.flush()
        return result

    try:
        return asyncio.run(run())
    finally:
        cache.close()


def _resolve_topic(doc: Document, ref: str) -> Topic:
    """Resolve a topic id, unique id prefix, or exact title."""
    topic = topics.find_topic(doc, ref)
    if topic:
        return topic
    matches = [t for t in doc.topics if t.id.startswith(ref)] or [
        t for t in doc.topics if t.title == ref
    ]
    if len(matches) == 1:
        return matches[0]
    if matches:
        typer.echo(f"Topic '{ref}' is ambiguous ({len(matches)} matches).")
    else:
        typer.echo(f"Topic '{ref}' not found.")
    raise typer.Exit(1)


def _fmt_time(ts_ms: int) -> str:
    return f"{datetime.fromtimestamp(ts_ms / 1000, tz=UTC):%Y-%m-%d %H:%M}"


def _topic_json(doc: Document, topic: Topic) -> dict[str, Any]:
    return {
        **topic.to_dict(),
        "checklist": topics.is_checklist(doc, topic.id),
        "content": topics.get_content(doc, topic.id),
        "checks": topics.get_checks(doc, topic.id),
    }


@app.command(name="topics")
def list_topics(data_dir: DataDirOption = None, output_json: JsonOption = False) -> None:
    """List topics, most recently updated first."""
    doc = _run(data_dir, lambda r: r.document)
    ordered = topics.sorted_topics(doc)
    if output_json:
        data = {"topics": [t.to_dict() for t in ordered], "count": len(ordered)}
        typer.echo(json.dumps(data, indent=2))
        return
    typer.echo(f"{len(ordered)} topics:\n")
    for t in ordered:
        mark = " [checklist]" if topics.is_checklist(doc, t.id) else ""
        typer.echo(f"  {t.title or 'Untitled'}{mark}")
        typer.echo(f"    {_fmt_time(t.updated_at)}  id={t.id}")


@app.command()
def new(
    title: str = typer.Option(topics.NEW_TOPIC_TITLE, "--title", "-t", help="Topic title"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Create a new empty topic."""
    topic = _run(data_dir, lambda r: r.create_topic(title))
    if output_json:
        typer.echo(json.dumps(topic.to_dict(), indent=2))
    else:
        typer.echo(f"Created '{topic.title}'  id={topic.id}")


@app.command()
def show(
    ref: str = typer.Argument(..., help="Topic id, id prefix or title"),
    data_dir: DataDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Print a topic's content, as a checklist when checklist mode is on."""
    doc = _run(data_dir, lambda r: r.document)
    topic = _resolve_topic(doc, ref)
    if output_json:
        typer.echo(json.dumps(_topic_json(doc, topic), indent=2))
        return
    typer.echo(f"# {topic.title or 'Untitled'}\n")
    if topics.is_checklist(doc, topic.id):
        lines = topics.get_lines(doc, topic.id)
        checks = topics.get_checks(doc, topic.id)
        for num, (line, checked) in enumerate(zip(lines, checks, strict=True), start=1):
            typer.echo(f"{num:>3}. [{'x' if checked else ' '}] {line}")
    else:
        typer.echo(topics.get_content(doc, topic.id))


def _mutate(data_dir: Path | None, ref: str, action: Callable[[Reconciler, Topic], bool]) -> bool:
    def run(r: Reconciler) -> bool:
        return action(r, _resolve_topic(r.document, ref))

    return _run(data_dir, run)


@app.command()
def rename(
    ref: str = typer.Argument(..., help="Topic id, id prefix or title"),
    title: str = typer.Argument(..., help="New title"),
    data_dir: DataDirOption = None,
) -> None:
    """Rename a topic."""
    _mutate(data_dir, ref, lambda r, t: r.rename_topic(t.id, title))
    typer.echo(f"Renamed to '{title}'")


@app.command()
def write(
    ref: str = typer.Argument(..., help="Topic id, id prefix or title"),
    text: Annotated[
        str | None,
        typer.Option("--text", "-t", help="New content (read from stdin if omitted)"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Replace a topic's content."""
    if text is None:
        text = typer.get_text_stream("stdin").read()
    _mutate(data_dir, ref, lambda r, t: r.set_content(t.id, text))
    typer.echo("Saved")


@app.command(name="edit-line")
def edit_line(
    ref: str = typer.Argument(..., help="Topic id, id prefix or title"),
    line: int = typer.Argument(..., help="Line number (1-based)"),
    text: str = typer.Argument(..., help="New line text"),
    data_dir: DataDirOption = None,
) -> None:
    """Replace a single line of a topic."""
    if not _mutate(data_dir, ref, lambda r, t: r.set_line_text(t.id, line - 1, text)):
        typer.echo(f"Line {line} does not exist.")
        raise typer.Exit(1)
    typer.echo("Saved")


@app.command()
def checklist(
    ref: str = typer.Argument(..., help="Topic id, id prefix or title"),
    enabled: Annotated[
        bool | None,
        typer.Option("--on/--off", help="Set checklist mode (toggles if omitted)"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Turn checklist mode on or off."""

    def run(r: Reconciler, t: Topic) -> bool:
        if enabled is None:
            r.toggle_checklist_mode(t.id)
        else:
            r.set_checklist_mode(t.id, enabled)
        return topics.is_checklist(r.document, t.id)

    state = _mutate(data_dir, ref, run)
    typer.echo(f"Checklist mode {'on' if state else 'off'}")


@app.command()
def toggle(
    ref: str = typer.Argument(..., help="Topic id, id prefix or title"),
    line: int = typer.Argument(..., help="Line number (1-based)"),
    data_dir: DataDirOption = None,
) -> None:
    """Check or uncheck a checklist line; done lines move below pending ones."""
    if not _mutate(data_dir, ref, lambda r, t: r.toggle_line_check(t.id, line - 1)):
        typer.echo(f"Line {line} does not exist.")
        raise typer.Exit(1)
    typer.echo("Toggled")


@app.command()
def delete(
    ref: str = typer.Argument(..., help="Topic id, id prefix or title"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    data_dir: DataDirOption = None,
) -> None:
    """Delete a topic. This cannot be undone."""

    def run(r: Reconciler, t: Topic) -> bool:
        name = t.title.strip() or "this note"
        if not yes and not typer.confirm(f'Delete "{name}"? This action cannot be undone.'):
            return False
        return r.delete_topic(t.id)

    if _mutate(data_dir, ref, run):
        typer.echo("Deleted")


@app.command()
def login(
    user_id: str = typer.Argument(..., help="Account user id"),
    token: str = typer.Option(..., "--token", prompt=True, hide_input=True, help="Access token"),
) -> None:
    """Store a signed-in session; notes will sync to the remote store."""
    FileSession().sign_in(Identity(user_id=user_id, access_token=token))
    typer.echo(f"Signed in as {user_id}")


@app.command()
def logout() -> None:
    """Forget the signed-in session. The local copy is kept."""
    FileSession().sign_out()
    typer.echo("Signed out")


@app.command()
def whoami() -> None:
    """Show the signed-in identity."""
    identity = FileSession().current_identity()
    typer.echo(identity.user_id if identity else "Not signed in (local only)")


@app.command()
def feedback(
    message: str = typer.Argument(..., help="Your message"),
    category: str = typer.Option("feature", "--category", "-c", help=f"One of {CATEGORIES}"),
    contact: Annotated[
        str | None,
        typer.Option("--contact", help="How to reach you (optional)"),
    ] = None,
) -> None:
    """Send feedback to the developers."""
    identity = FileSession().current_identity()
    try:
        store = RemoteStore()
        submit_feedback(store, category, message, contact=contact, page_path="cli",
                        identity=identity)
    except ValueError as e:
        typer.echo(str(e))
        raise typer.Exit(1) from e
    except RuntimeError as e:
        logger.error("Could not send feedback: {}", e)
        raise typer.Exit(1) from e
    typer.echo("Thanks for your feedback!")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from tidymemo.mcp.server import run_mcp_server

    run_mcp_server()
