"""Remote document store client (PostgREST-style HTTP API)."""

import json
from datetime import UTC, datetime
from typing import Any

import requests
from loguru import logger

from tidymemo.config import FEEDBACK_TABLE, HTTP_TIMEOUT, REMOTE_API_KEY, REMOTE_TABLE, REMOTE_URL
from tidymemo.models.document import Document
from tidymemo.models.identity import Identity


class RemoteStoreError(RuntimeError):
    """A remote call failed: transport error, bad status or bad payload."""


def _iso(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000, tz=UTC).isoformat()


class RemoteStore:
    """Account-scoped Document records, one row per user id.

    Every method raises RemoteStoreError on failure. Absence of a record is not
    a failure: ``load_remote`` returns None for it.
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        *,
        table: str = REMOTE_TABLE,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        url = url or REMOTE_URL
        if not url:
            msg = "Remote store URL is not configured, set TIDYMEMO_REMOTE_URL"
            raise RuntimeError(msg)
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.api_key = api_key if api_key is not None else REMOTE_API_KEY
        self.table = table
        self.timeout = timeout
        self.sess = requests.Session()
        logger.debug("Remote store ready: {!r}, table {!r}", self.base_url, self.table)

    def _headers(self, identity: Identity | None, **extra: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **extra}
        if self.api_key:
            headers["apikey"] = self.api_key
        token = identity.access_token if identity else self.api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(
        self,
        method: str,
        table: str,
        *,
        identity: Identity | None,
        params: dict[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> requests.Response:
        extra = {"Prefer": prefer} if prefer else {}
        logger.debug("Making request: {} {} {!r}", method, table, params)
        try:
            r = self.sess.request(
                method,
                f"{self.base_url}/{table}",
                params=params,
                data=None if body is None else json.dumps(body),
                headers=self._headers(identity, **extra),
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            msg = f"Remote call failed: {method} {table} -> {e}"
            raise RemoteStoreError(msg) from e
        return r

    def load_remote(self, identity: Identity) -> Document | None:
        """Fetch the identity's Document, or None if it has no record yet."""
        r = self._request(
            "GET",
            self.table,
            identity=identity,
            params={"select": "data", "user_id": f"eq.{identity.user_id}", "limit": "1"},
        )
        try:
            rows = r.json()
        except ValueError as e:
            msg = f"Remote returned invalid JSON for {identity!r}"
            raise RemoteStoreError(msg) from e
        if not isinstance(rows, list):
            msg = f"Remote returned unexpected payload: {str(rows)[:64]!r}"
            raise RemoteStoreError(msg)
        if not rows:
            return None
        if not isinstance(rows[0], dict):
            msg = f"Remote returned a malformed row: {str(rows[0])[:64]!r}"
            raise RemoteStoreError(msg)
        if rows[0].get("data") is None:
            return None
        try:
            return Document.from_dict(rows[0]["data"])
        except (ValueError, TypeError) as e:
            msg = f"Remote document for {identity!r} is malformed: {e}"
            raise RemoteStoreError(msg) from e

    def create_remote(self, identity: Identity, payload: str) -> None:
        """Insert the first record for a newly seen identity."""
        self._request(
            "POST",
            self.table,
            identity=identity,
            body={"user_id": identity.user_id, "data": json.loads(payload)},
            prefer="return=minimal",
        )

    def update_remote(self, identity: Identity, payload: str, updated_at: int) -> None:
        """Replace the identity's whole record with ``payload``."""
        self._request(
            "POST",
            self.table,
            identity=identity,
            params={"on_conflict": "user_id"},
            body={
                "user_id": identity.user_id,
                "data": json.loads(payload),
                "updated_at": _iso(updated_at),
            },
            prefer="resolution=merge-duplicates,return=minimal",
        )

    def insert_feedback(self, record: dict[str, Any], identity: Identity | None = None) -> None:
        self._request(
            "POST",
            FEEDBACK_TABLE,
            identity=identity,
            body=record,
            prefer="return=minimal",
        )
