"""Store: a key-value mapping where every write is a git commit."""

import logging
from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any, Callable, Literal

from dulwich.repo import BaseRepo, Repo

from .content_types import ContentType, yaml_value
from .keys import KeyCodec
from .record import CommitRecord, Identity
from .repo import DEFAULT_BRANCH, identity_from_config, memory_repo, open_repo
from .staging import Staging
from .versioned import Versioned

logger = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 20

IdentityLike = Identity | Mapping[str, str] | tuple[str, str]

_MISSING = object()


class Store(MutableMapping[Any, Any]):
    """Versioned key-value store over a git repository.

    Each ``set()``, ``delete()`` or ``clear()`` that changes the
    branch's tree becomes one commit whose parent is the previous tip.
    Writes that would not change the tree create no commit.

    Reads resolve the branch tip on every call. ``get_at()`` and
    ``log()`` read historical commits.

    Keys are strings or any picklable value (see ``KeyCodec``). Values
    are encoded with ``content_type`` (YAML by default).

    Args:
        repo: An opened dulwich repository (see ``store()``).
        branch: Branch to read and write (default ``"main"``).
        content_type: Value codec (default ``yaml_value()``).
        author: Default commit author. Defaults to the repository's
            ``user.name``/``user.email``.
        committer: Default committer. Defaults to the author.
        retries: Extra attempts when another writer moves the branch
            during a write (default 0: raise ``ConcurrencyError``).
    """

    def __init__(
        self,
        repo: BaseRepo,
        *,
        branch: str = DEFAULT_BRANCH,
        content_type: ContentType | None = None,
        author: IdentityLike | None = None,
        committer: IdentityLike | None = None,
        retries: int = 0,
    ) -> None:
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.repo = repo
        self.branch = branch
        self.retries = retries
        self._content_type = content_type or yaml_value()
        self._codec = KeyCodec()
        self.author = (
            Identity.coerce(author) if author is not None else identity_from_config(repo)
        )
        self._committer = Identity.coerce(committer) if committer is not None else None
        # Fail fast on a bad branch name
        self._versioned(branch)

    def __repr__(self) -> str:
        return f"Store(branch={self.branch!r}, head={self.head()})"

    def _versioned(self, branch: str | None) -> Versioned:
        return Versioned(self.repo, branch or self.branch)

    # -- Read operations --

    def head(self, *, branch: str | None = None) -> str | None:
        """The branch's tip commit id, or None before the first commit."""
        tip = self._versioned(branch).tip
        return tip.decode("ascii") if tip is not None else None

    def get(self, key: Any, default: Any = None, *, branch: str | None = None) -> Any:
        """Value of ``key`` at the branch tip, or ``default``."""
        raw = self._read_tip(self._codec.entry_name(key), branch)
        if raw is None:
            return default
        return self._content_type.load(raw)

    def _read_tip(self, name: bytes, branch: str | None) -> bytes | None:
        versioned = self._versioned(branch)
        tip = versioned.tip
        if tip is None:
            return None
        return versioned.read(self.repo[tip], name)

    def get_at(self, key: Any, commit_id: str, default: Any = None) -> Any:
        """Value of ``key`` as of commit ``commit_id``, or ``default``.

        Raises:
            NotFound: ``commit_id`` is not a commit in the repository.
        """
        versioned = self._versioned(None)
        commit = versioned.resolve(commit_id)
        raw = versioned.read(commit, self._codec.entry_name(key))
        if raw is None:
            return default
        return self._content_type.load(raw)

    def keys(self, *, branch: str | None = None) -> list[Any]:  # type: ignore[override]
        """Keys at the branch tip, in tree order."""
        versioned = self._versioned(branch)
        tip = versioned.tip
        if tip is None:
            return []
        tree = versioned.tree(self.repo[tip])
        return [self._codec.key_for(entry.path) for entry in tree.items()]

    def has_key(self, key: Any, *, branch: str | None = None) -> bool:
        """Whether the branch tip has an entry for ``key``."""
        versioned = self._versioned(branch)
        tip = versioned.tip
        if tip is None:
            return False
        return self._codec.entry_name(key) in versioned.tree(self.repo[tip])

    def __contains__(self, key: object) -> bool:
        try:
            return self.has_key(key)
        except ValueError:
            return False

    def __getitem__(self, key: Any) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __setitem__(self, key: Any, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: Any) -> None:
        if key not in self:
            raise KeyError(key)
        self.delete(key)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.keys())

    # -- Write operations --

    def set(
        self,
        key: Any,
        value: Any,
        *,
        message: str | None = None,
        author: IdentityLike | None = None,
        committer: IdentityLike | None = None,
        branch: str | None = None,
    ) -> str | None:
        """Store ``value`` under ``key`` as a new commit.

        Returns:
            The new commit id, or None when ``key`` already holds a
            value with the same encoding (no commit is made).
        """
        name = self._codec.entry_name(key)
        data = self._content_type.encode(value)
        if self._read_tip(name, branch) == data:
            logger.debug("Value for %r unchanged, skipping commit", key)
            return None

        return self._write(
            lambda staging: staging.add(name, data),
            message=message if message is not None else f"set '{key}'",
            author=author,
            committer=committer,
            branch=branch,
        )

    def delete(
        self,
        key: Any,
        *,
        message: str | None = None,
        author: IdentityLike | None = None,
        committer: IdentityLike | None = None,
        branch: str | None = None,
    ) -> Any:
        """Remove ``key`` as a new commit.

        Returns:
            The value ``key`` held before, or None if it was absent (in
            which case no commit is made).
        """
        name = self._codec.entry_name(key)
        previous = self.get(key, branch=branch)
        self._write(
            lambda staging: staging.remove(name),
            message=message if message is not None else f"deleted {key}",
            author=author,
            committer=committer,
            branch=branch,
        )
        return previous

    def clear(  # type: ignore[override]
        self,
        *,
        message: str | None = None,
        author: IdentityLike | None = None,
        committer: IdentityLike | None = None,
        branch: str | None = None,
    ) -> str | None:
        """Remove every key as a single commit.

        Returns:
            The new commit id, or None if the store was already empty.
        """
        return self._write(
            lambda staging: staging.remove_all(),
            message=message if message is not None else "all clear",
            author=author,
            committer=committer,
            branch=branch,
        )

    def _write(
        self,
        apply: Callable[[Staging], None],
        *,
        message: str,
        author: IdentityLike | None,
        committer: IdentityLike | None,
        branch: str | None,
    ) -> str | None:
        author = Identity.coerce(author) if author is not None else self.author
        if committer is not None:
            committer = Identity.coerce(committer)
        else:
            committer = self._committer or author
        return self._versioned(branch).write(
            apply,
            message=message,
            author=author,
            committer=committer,
            retries=self.retries,
        )

    # -- History --

    def log(
        self,
        key: Any,
        *,
        limit: int | None = DEFAULT_LOG_LIMIT,
        include_values: bool = False,
        branch: str | None = None,
    ) -> list[CommitRecord]:
        """Commits that changed ``key``, newest first.

        Args:
            key: The key to follow.
            limit: Maximum number of records (default 20). ``None``
                returns the whole history.
            include_values: Attach the key's value as of each commit
                as ``record.value`` (None where the commit removed it).
            branch: Branch to read (default: the store's branch).
        """
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0 or None")
        name = self._codec.entry_name(key)
        records = [
            CommitRecord.from_commit(commit)
            for commit in self._versioned(branch).history(name, limit=limit)
        ]
        if include_values:
            records = [r.with_value(self.get_at(key, r.id)) for r in records]
        return records

    # -- Lifecycle --

    def close(self) -> None:
        """Release the repository's open files (disk repositories)."""
        if isinstance(self.repo, Repo):
            self.repo.close()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def store(
    storage: Literal["memory", "disk"] = "memory",
    *,
    path: str | None = None,
    bare: bool | None = None,
    branch: str = DEFAULT_BRANCH,
    content_type: ContentType | None = None,
    author: IdentityLike | None = None,
    committer: IdentityLike | None = None,
    retries: int = 0,
) -> Store:
    """Create a Store with sensible defaults.

    Args:
        storage: ``"memory"`` (default) or ``"disk"``.
        path: Required when ``storage="disk"``. Repository directory,
            created and initialized if needed.
        bare: Disk only. Whether a new repository is bare; by default
            paths ending in ``.git`` are bare.
        branch: Branch name (default ``"main"``).
        content_type: Value codec (default ``yaml_value()``).
        author: Default commit author.
        committer: Default committer (defaults to the author).
        retries: Retries on concurrent branch updates (default 0).

    Returns:
        A ``Store`` instance.
    """
    if storage == "memory":
        repo = memory_repo()
    elif storage == "disk":
        if path is None:
            raise ValueError("path is required when storage='disk'")
        repo = open_repo(path, bare=bare, branch=branch)
    else:
        raise ValueError(f"Unknown storage: {storage!r}")

    return Store(
        repo,
        branch=branch,
        content_type=content_type,
        author=author,
        committer=committer,
        retries=retries,
    )
