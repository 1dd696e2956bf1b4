"""MCP server exposing tidymemo topics and checklists."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from tidymemo.config import resolve_data_directory
from tidymemo.core import topics
from tidymemo.session import FileSession
from tidymemo.storage.local import LocalCache
from tidymemo.storage.remote import RemoteStore
from tidymemo.sync.reconciler import Reconciler


def _not_found(topic_id: str) -> dict[str, Any]:
    return {"success": False, "error": f"Topic '{topic_id}' not found."}


def _topic_payload(reconciler: Reconciler, topic_id: str) -> dict[str, Any]:
    doc = reconciler.document
    topic = topics.find_topic(doc, topic_id)
    if topic is None:
        return _not_found(topic_id)
    return {
        "id": topic.id,
        "title": topic.title,
        "updated_at": topic.updated_at,
        "checklist": topics.is_checklist(doc, topic.id),
        "lines": topics.get_lines(doc, topic.id),
        "checks": topics.get_checks(doc, topic.id),
    }


# --- Core functions (testable without MCP context) ---


def tidymemo_list_topics(reconciler: Reconciler) -> dict[str, Any]:
    """List topics, most recently updated first."""
    doc = reconciler.document
    results = [
        {
            "id": t.id,
            "title": t.title,
            "updated_at": t.updated_at,
            "checklist": topics.is_checklist(doc, t.id),
        }
        for t in topics.sorted_topics(doc)
    ]
    return {"topics": results, "count": len(results), "saving": reconciler.saving}


def tidymemo_read_topic(reconciler: Reconciler, *, topic_id: str) -> dict[str, Any]:
    return _topic_payload(reconciler, topic_id)


def tidymemo_create_topic(reconciler: Reconciler, *, title: str | None = None) -> dict[str, Any]:
    topic = reconciler.create_topic(title or topics.NEW_TOPIC_TITLE)
    return {"success": True, "topic_id": topic.id}


def tidymemo_write_topic(
    reconciler: Reconciler,
    *,
    topic_id: str,
    content: str | None = None,
    title: str | None = None,
) -> dict[str, Any]:
    if content is None and title is None:
        return {"success": False, "error": "No fields to update."}
    if topics.find_topic(reconciler.document, topic_id) is None:
        return _not_found(topic_id)
    if title is not None:
        reconciler.rename_topic(topic_id, title)
    if content is not None:
        reconciler.set_content(topic_id, content)
    return {"success": True, "topic_id": topic_id}


def tidymemo_delete_topic(reconciler: Reconciler, *, topic_id: str) -> dict[str, Any]:
    if not reconciler.delete_topic(topic_id):
        return _not_found(topic_id)
    return {"success": True, "topic_id": topic_id}


def tidymemo_set_checklist_mode(
    reconciler: Reconciler, *, topic_id: str, enabled: bool
) -> dict[str, Any]:
    if not reconciler.set_checklist_mode(topic_id, enabled):
        return _not_found(topic_id)
    return {"success": True, "topic_id": topic_id, "checklist": enabled}


def tidymemo_toggle_line(reconciler: Reconciler, *, topic_id: str, index: int) -> dict[str, Any]:
    if topics.find_topic(reconciler.document, topic_id) is None:
        return _not_found(topic_id)
    if not reconciler.toggle_line_check(topic_id, index):
        return {"success": False, "error": f"Line index {index} out of range."}
    return {"success": True, **_topic_payload(reconciler, topic_id)}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    reconciler: Reconciler
    cache: LocalCache


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Load the document on startup, wait for pending writes on shutdown."""
    identity = FileSession().current_identity()
    remote = RemoteStore() if identity else None
    cache = LocalCache.open(resolve_data_directory())
    reconciler = Reconciler(cache, remote, identity)
    try:
        await reconciler.load()
        logger.info("Loaded {} topic(s)", len(reconciler.document.topics))
        yield ServerContext(reconciler=reconciler, cache=cache)
    finally:
        await reconciler.flush()
        cache.close()


mcp_server = FastMCP(
    "tidymemo",
    instructions="""\
tidymemo keeps plain-text notes ("topics"). A topic can be shown as a checklist,
where every line of its content is one item.

- Use tidymemo_list_topics_tool to discover topic ids.
- Toggling a checklist line regroups the content: pending lines first, done
  lines after. Line indexes change after every toggle, so re-read the topic
  before toggling again.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def tidymemo_list_topics_tool(ctx: Context) -> dict[str, Any]:
    """List all topics, most recently updated first."""
    return tidymemo_list_topics(_ctx(ctx).reconciler)


@mcp_server.tool()
async def tidymemo_read_topic_tool(ctx: Context, topic_id: str) -> dict[str, Any]:
    """Read a topic's title, lines and checklist state.

    Args:
        topic_id: Topic ID from tidymemo_list_topics_tool.
    """
    return tidymemo_read_topic(_ctx(ctx).reconciler, topic_id=topic_id)


@mcp_server.tool()
async def tidymemo_create_topic_tool(ctx: Context, title: str | None = None) -> dict[str, Any]:
    """Create a new empty topic.

    Args:
        title: Optional title (defaults to "New note").
    """
    return tidymemo_create_topic(_ctx(ctx).reconciler, title=title)


@mcp_server.tool()
async def tidymemo_write_topic_tool(
    ctx: Context,
    topic_id: str,
    content: str | None = None,
    title: str | None = None,
) -> dict[str, Any]:
    """Replace a topic's content and/or title.

    Args:
        topic_id: Topic ID.
        content: New full content (lines separated by newlines).
        title: New title.
    """
    return tidymemo_write_topic(_ctx(ctx).reconciler, topic_id=topic_id, content=content,
                                title=title)


@mcp_server.tool()
async def tidymemo_delete_topic_tool(ctx: Context, topic_id: str) -> dict[str, Any]:
    """Delete a topic. This cannot be undone."""
    return tidymemo_delete_topic(_ctx(ctx).reconciler, topic_id=topic_id)


@mcp_server.tool()
async def tidymemo_set_checklist_mode_tool(
    ctx: Context, topic_id: str, enabled: bool
) -> dict[str, Any]:
    """Turn checklist mode on or off for a topic."""
    return tidymemo_set_checklist_mode(_ctx(ctx).reconciler, topic_id=topic_id, enabled=enabled)


@mcp_server.tool()
async def tidymemo_toggle_line_tool(ctx: Context, topic_id: str, index: int) -> dict[str, Any]:
    """Check or uncheck one checklist line.

    Args:
        topic_id: Topic ID.
        index: Zero-based line index, as returned by tidymemo_read_topic_tool.
    """
    return tidymemo_toggle_line(_ctx(ctx).reconciler, topic_id=topic_id, index=index)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from tidymemo.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
