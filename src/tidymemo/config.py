"""Configuration constants for tidymemo."""

import os
from pathlib import Path

# Directory with the local cache. First directory which is found is used,
# otherwise the first entry is created.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/tidymemo").expanduser(),
    Path("~/.tidymemo").expanduser(),
]

# Signed-in session (user id + access token). First file found is used.
SESSION_FILES: list[Path] = [
    Path("~/.config/tidymemo/session.json").expanduser(),
    Path("~/.tidymemo/session.json").expanduser(),
]

# Namespaced key of the serialized document in the local cache.
STORAGE_KEY: str = "tidymemo-notepad-v3"

# Local cache database file name, inside the data directory.
CACHE_DB_NAME: str = "tidymemo.db"

# Remote tables.
REMOTE_TABLE: str = "memo_documents"
FEEDBACK_TABLE: str = "vol_feedback"

# Remote endpoint, e.g. https://<project>.supabase.co
REMOTE_URL: str | None = os.environ.get("TIDYMEMO_REMOTE_URL")
REMOTE_API_KEY: str | None = os.environ.get("TIDYMEMO_REMOTE_KEY")

# Seconds before a remote request is abandoned.
HTTP_TIMEOUT: float = float(os.environ.get("TIDYMEMO_HTTP_TIMEOUT", "10"))


def resolve_data_directory() -> Path:
    """Return the data directory: $TIDYMEMO_DATA_DIR, else first existing candidate."""
    env_dir = os.environ.get("TIDYMEMO_DATA_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]


def resolve_session_file() -> Path:
    """Return the first existing session file, or the default location for a new one."""
    for candidate in SESSION_FILES:
        if candidate.is_file():
            return candidate
    return SESSION_FILES[0]
