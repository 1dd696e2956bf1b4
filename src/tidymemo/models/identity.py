"""Signed-in identity passed to the remote store."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """A stable account id plus the bearer token used to reach its records."""

    user_id: str
    access_token: str

    def __repr__(self) -> str:
        return f"Identity(user_id={self.user_id!r})"
