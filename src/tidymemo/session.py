"""Signed-in session: who the current identity is, and who wants to know."""

import json
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from tidymemo.config import resolve_session_file
from tidymemo.models.identity import Identity

IdentityListener = Callable[[Identity | None], None]


class Session:
    """In-memory identity holder with change notification."""

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity
        self._listeners: list[IdentityListener] = []

    def current_identity(self) -> Identity | None:
        return self._identity

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register a callback for identity changes. Returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _set(self, identity: Identity | None) -> None:
        if identity == self._identity:
            return
        self._identity = identity
        for listener in list(self._listeners):
            listener(identity)

    def sign_in(self, identity: Identity) -> None:
        self._set(identity)

    def sign_out(self) -> None:
        self._set(None)


class FileSession(Session):
    """Session persisted as JSON (``{"user_id", "access_token"}``) in a file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else resolve_session_file()
        super().__init__(self._read())

    def _read(self) -> Identity | None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file {}: {}", self.path, e)
            return None
        user_id = data.get("user_id") if isinstance(data, dict) else None
        token = data.get("access_token") if isinstance(data, dict) else None
        if not user_id or not token:
            logger.warning("Ignoring incomplete session file {}", self.path)
            return None
        return Identity(user_id=str(user_id), access_token=str(token))

    def sign_in(self, identity: Identity) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({"user_id": identity.user_id, "access_token": identity.access_token}),
            encoding="utf-8",
        )
        self.path.chmod(0o600)
        super().sign_in(identity)

    def sign_out(self) -> None:
        self.path.unlink(missing_ok=True)
        super().sign_out()
