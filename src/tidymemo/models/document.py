"""Domain models for the tidymemo document store."""

import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

DEFAULT_TITLE = "Untitled"


def now_ms() -> int:
    """Current time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_topic_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Topic:
    """A single note."""

    id: str
    title: str
    created_at: int
    updated_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Topic":
        if not isinstance(data, dict) or not isinstance(data.get("id"), str):
            msg = f"bad topic record: {data!r}"
            raise ValueError(msg)
        return cls(
            id=data["id"],
            title=str(data.get("title", "")),
            created_at=int(data.get("createdAt", 0)),
            updated_at=int(data.get("updatedAt", 0)),
        )


@dataclass
class Document:
    """All topics of one identity, with their content and checklist state.

    The three maps are keyed by topic id. Entries for unknown ids are tolerated
    on load but pruned whenever the owning topic is deleted.
    """

    topics: list[Topic] = field(default_factory=list)
    content_by_topic: dict[str, str] = field(default_factory=dict)
    checklist_mode_by_topic: dict[str, bool] = field(default_factory=dict)
    checks_by_topic: dict[str, list[bool]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation shared by the local and remote stores."""
        return {
            "topics": [t.to_dict() for t in self.topics],
            "contentsByTopicId": dict(self.content_by_topic),
            "checklistModeByTopicId": dict(self.checklist_mode_by_topic),
            "checksByTopicId": {k: list(v) for k, v in self.checks_by_topic.items()},
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Document":
        """Build a Document from its wire representation.

        Missing maps are treated as empty. Raises ValueError when the payload
        does not have the expected shape.
        """
        if not isinstance(data, dict):
            msg = f"document must be a JSON object, got {type(data).__name__}"
            raise ValueError(msg)
        raw_topics = data.get("topics") or []
        if not isinstance(raw_topics, list):
            msg = f"bad topics list: {raw_topics!r}"
            raise ValueError(msg)

        contents = data.get("contentsByTopicId") or {}
        modes = data.get("checklistModeByTopicId") or {}
        checks = data.get("checksByTopicId") or {}
        for name, value in (
            ("contentsByTopicId", contents),
            ("checklistModeByTopicId", modes),
            ("checksByTopicId", checks),
        ):
            if not isinstance(value, dict):
                msg = f"bad {name}: expected an object, got {type(value).__name__}"
                raise ValueError(msg)

        return cls(
            topics=[Topic.from_dict(t) for t in raw_topics],
            content_by_topic={str(k): str(v) for k, v in contents.items()},
            checklist_mode_by_topic={str(k): bool(v) for k, v in modes.items()},
            checks_by_topic={str(k): [bool(x) for x in v] for k, v in checks.items()},
        )

    def serialize(self) -> str:
        """Deterministic JSON text, so two snapshots can be compared byte-for-byte."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def deserialize(cls, text: str) -> "Document":
        return cls.from_dict(json.loads(text))

    @property
    def is_empty(self) -> bool:
        return not self.topics


def bootstrap_document(*, now: int | None = None) -> Document:
    """Create the minimal valid Document: one empty topic titled "Untitled"."""
    ts = now_ms() if now is None else now
    topic = Topic(id=new_topic_id(), title=DEFAULT_TITLE, created_at=ts, updated_at=ts)
    return Document(topics=[topic], content_by_topic={topic.id: ""})
