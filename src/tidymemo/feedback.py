"""Feedback submission."""

import platform
from typing import Any

from loguru import logger

from tidymemo import __version__
from tidymemo.models.identity import Identity
from tidymemo.storage.remote import RemoteStore

CATEGORIES = ("bug", "feature", "other")


def build_feedback(
    category: str,
    message: str,
    *,
    contact: str | None = None,
    page_path: str | None = None,
) -> dict[str, Any]:
    """Validate a feedback message and build the record to insert.

    Raises:
        ValueError: unknown category or blank message.
    """
    if category not in CATEGORIES:
        msg = f"Unknown feedback category {category!r}, expected one of {CATEGORIES}"
        raise ValueError(msg)
    if not message.strip():
        msg = "Please enter your message."
        raise ValueError(msg)
    return {
        "category": category,
        "message": message,
        "contact": contact or None,
        "user_agent": f"tidymemo/{__version__} ({platform.system()})",
        "page_path": page_path,
    }


def submit_feedback(
    store: RemoteStore,
    category: str,
    message: str,
    *,
    contact: str | None = None,
    page_path: str | None = None,
    identity: Identity | None = None,
) -> None:
    """Send feedback to the remote store. Raises RemoteStoreError on failure."""
    record = build_feedback(category, message, contact=contact, page_path=page_path)
    store.insert_feedback(record, identity)
    logger.info("Feedback sent ({})", category)
