"""CommitRecord: read-only view of one history entry."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from functools import cached_property
from typing import Any, Mapping, NamedTuple

from dulwich.objects import Commit

FIELDS = (
    "id",
    "parents",
    "tree",
    "message",
    "author",
    "committer",
    "authored_date",
    "committed_date",
    "value",
)


class Identity(NamedTuple):
    """A commit author or committer."""

    name: str
    email: str

    @classmethod
    def parse(cls, raw: bytes | str) -> "Identity":
        """Parse a git identity line (``Name <email>``)."""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        name, _, email_part = raw.partition(" <")
        return cls(name, email_part.rstrip(">"))

    @classmethod
    def coerce(
        cls, value: "Identity | Mapping[str, str] | tuple[str, str]"
    ) -> "Identity":
        """Accept an Identity, a ``{name, email}`` mapping or a pair."""
        if isinstance(value, Identity):
            return value
        if isinstance(value, Mapping):
            return cls(value["name"], value["email"])
        name, email = value
        return cls(name, email)

    def as_bytes(self) -> bytes:
        return f"{self.name} <{self.email}>".encode("utf-8")


def _iso_date(seconds: int, offset: int) -> str:
    tz = timezone(timedelta(seconds=offset))
    return datetime.fromtimestamp(seconds, tz=tz).isoformat()


@dataclass(frozen=True)
class CommitRecord:
    """One entry of a key's history.

    Dates are stored as ISO-8601 strings. ``authored_date`` and
    ``committed_date`` parse them into ``datetime`` once, on first
    access. ``record["committed_date"]`` returns the stored string.

    ``value`` is the key's value as of this commit when the log was
    requested with ``include_values``, else ``None``.
    """

    id: str
    parents: tuple[str, ...]
    tree: str
    message: str
    author: Identity
    committer: Identity
    raw_authored_date: str
    raw_committed_date: str
    value: Any = None

    @classmethod
    def from_commit(cls, commit: Commit, value: Any = None) -> "CommitRecord":
        return cls(
            id=commit.id.decode("ascii"),
            parents=tuple(p.decode("ascii") for p in commit.parents),
            tree=commit.tree.decode("ascii"),
            message=commit.message.decode("utf-8", errors="replace"),
            author=Identity.parse(commit.author),
            committer=Identity.parse(commit.committer),
            raw_authored_date=_iso_date(commit.author_time, commit.author_timezone),
            raw_committed_date=_iso_date(commit.commit_time, commit.commit_timezone),
            value=value,
        )

    @cached_property
    def authored_date(self) -> datetime:
        return datetime.fromisoformat(self.raw_authored_date)

    @cached_property
    def committed_date(self) -> datetime:
        return datetime.fromisoformat(self.raw_committed_date)

    def field(self, name: str) -> Any:
        """Look up a schema field by name.

        Raises:
            KeyError: ``name`` is not one of ``FIELDS``.
        """
        if name not in FIELDS:
            raise KeyError(name)
        if name == "authored_date":
            return self.raw_authored_date
        if name == "committed_date":
            return self.raw_committed_date
        return getattr(self, name)

    def __getitem__(self, name: str) -> Any:
        return self.field(name)

    def to_dict(self) -> dict[str, Any]:
        return {name: self.field(name) for name in FIELDS}

    def with_value(self, value: Any) -> "CommitRecord":
        return replace(self, value=value)
