"""In-memory topic operations on a Document.

No I/O happens here. Mutators return True when persisted state changed, so the
caller knows whether a write-through is due. Unknown topic ids are ignored
rather than raised: the caller may race with a deletion.
"""

import dataclasses

from loguru import logger

from tidymemo.core.checklist.reorder import (
    ChecklistIndexError,
    aligned_checks,
    reorder_on_toggle,
    split_lines,
)
from tidymemo.models.document import Document, Topic, new_topic_id, now_ms

NEW_TOPIC_TITLE = "New note"


def find_topic(doc: Document, topic_id: str) -> Topic | None:
    for topic in doc.topics:
        if topic.id == topic_id:
            return topic
    return None


def sorted_topics(doc: Document) -> list[Topic]:
    """Topics in display order: most recently updated first."""
    return sorted(doc.topics, key=lambda t: t.updated_at, reverse=True)


def get_content(doc: Document, topic_id: str) -> str:
    return doc.content_by_topic.get(topic_id, "")


def get_lines(doc: Document, topic_id: str) -> list[str]:
    return split_lines(get_content(doc, topic_id))


def is_checklist(doc: Document, topic_id: str) -> bool:
    return doc.checklist_mode_by_topic.get(topic_id, False)


def get_checks(doc: Document, topic_id: str) -> list[bool]:
    """Check flags aligned to the topic's current line count."""
    return aligned_checks(get_content(doc, topic_id), doc.checks_by_topic.get(topic_id))


def _touch(doc: Document, topic_id: str, *, now: int | None = None, **changes: object) -> bool:
    ts = now_ms() if now is None else now
    for i, topic in enumerate(doc.topics):
        if topic.id == topic_id:
            doc.topics[i] = dataclasses.replace(topic, updated_at=ts, **changes)
            return True
    return False


def create_topic(doc: Document, *, title: str = NEW_TOPIC_TITLE, now: int | None = None) -> Topic:
    """Append a new empty topic and return it."""
    ts = now_ms() if now is None else now
    topic = Topic(id=new_topic_id(), title=title, created_at=ts, updated_at=ts)
    doc.topics.append(topic)
    doc.content_by_topic[topic.id] = ""
    doc.checklist_mode_by_topic[topic.id] = False
    doc.checks_by_topic[topic.id] = []
    logger.debug("Created topic {}", topic.id)
    return topic


def delete_topic(doc: Document, topic_id: str) -> bool:
    """Remove a topic and every per-topic entry. Unknown ids are a no-op."""
    before = len(doc.topics)
    doc.topics = [t for t in doc.topics if t.id != topic_id]
    removed = len(doc.topics) != before
    # Orphaned map entries are pruned even when the topic itself is gone already.
    pruned = False
    for mapping in (doc.content_by_topic, doc.checklist_mode_by_topic, doc.checks_by_topic):
        if mapping.pop(topic_id, None) is not None:
            pruned = True
    if not removed:
        logger.debug("Delete of unknown topic {} ignored", topic_id)
    return removed or pruned


def rename_topic(doc: Document, topic_id: str, title: str, *, now: int | None = None) -> bool:
    if not _touch(doc, topic_id, now=now, title=title):
        logger.debug("Rename of unknown topic {} ignored", topic_id)
        return False
    return True


def set_content(doc: Document, topic_id: str, text: str, *, now: int | None = None) -> bool:
    if not _touch(doc, topic_id, now=now):
        logger.debug("Content update for unknown topic {} ignored", topic_id)
        return False
    doc.content_by_topic[topic_id] = text
    return True


def set_checklist_mode(doc: Document, topic_id: str, enabled: bool) -> bool:
    """Store the checklist flag. Content and checks are left untouched."""
    if find_topic(doc, topic_id) is None:
        logger.debug("Checklist mode for unknown topic {} ignored", topic_id)
        return False
    doc.checklist_mode_by_topic[topic_id] = enabled
    return True


def toggle_checklist_mode(doc: Document, topic_id: str) -> bool:
    return set_checklist_mode(doc, topic_id, not is_checklist(doc, topic_id))


def set_line_text(
    doc: Document, topic_id: str, index: int, text: str, *, now: int | None = None
) -> bool:
    """Replace a single line of the topic body."""
    if find_topic(doc, topic_id) is None:
        logger.debug("Line edit for unknown topic {} ignored", topic_id)
        return False
    lines = get_lines(doc, topic_id)
    if not 0 <= index < len(lines):
        logger.warning("Line edit at index {} ignored, topic {} has {} line(s)",
                       index, topic_id, len(lines))
        return False
    lines[index] = text
    return set_content(doc, topic_id, "\n".join(lines), now=now)


def toggle_line_check(doc: Document, topic_id: str, index: int, *, now: int | None = None) -> bool:
    """Toggle one checklist line and persist the regrouped order.

    The body text itself is rewritten in the new order, and the reordered flags
    replace the stored checks.
    """
    if find_topic(doc, topic_id) is None:
        logger.debug("Toggle on unknown topic {} ignored", topic_id)
        return False
    try:
        state = reorder_on_toggle(get_lines(doc, topic_id), get_checks(doc, topic_id), index)
    except ChecklistIndexError as e:
        logger.warning("Toggle ignored for topic {}: {}", topic_id, e)
        return False
    set_content(doc, topic_id, state.content, now=now)
    doc.checks_by_topic[topic_id] = list(state.checks)
    return True
