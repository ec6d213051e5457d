"""Versioned: commits and history for one branch of a git repository."""

import logging
import re
import time
from typing import Callable, Iterator

from dulwich.objects import Commit, Tree
from dulwich.refs import check_ref_format
from dulwich.repo import BaseRepo

from .errors import ConcurrencyError, NotFound
from .record import Identity
from .staging import Staging

logger = logging.getLogger(__name__)

BRANCH_REF = "refs/heads/%s"

_COMMIT_ID = re.compile(r"[0-9a-fA-F]{40}")


class Versioned:
    """A linear commit log over one branch of a repository.

    Provides:
    - ``tip`` / ``resolve()`` / ``read()`` to look up commits and entries
    - ``stage()`` + ``commit()`` to write one change (CAS on the branch)
    - ``write()`` to stage, commit and retry on concurrent updates
    - ``history()`` for commits that touched one entry
    """

    def __init__(self, repo: BaseRepo, branch: str = "main") -> None:
        ref = (BRANCH_REF % branch).encode("utf-8")
        if not check_ref_format(ref):
            raise ValueError(f"Invalid branch name: {branch!r}")
        self.repo = repo
        self._branch = branch
        self._ref = ref

    @property
    def current_branch(self) -> str:
        """The name of the branch."""
        return self._branch

    def __repr__(self) -> str:
        tip = self.tip
        short_hash = tip.decode("ascii")[:8] if tip else None
        return f"Versioned(branch={self._branch!r}, tip={short_hash})"

    @property
    def tip(self) -> bytes | None:
        """The branch's tip commit id, read fresh from the refs."""
        try:
            return self.repo.refs[self._ref]
        except KeyError:
            return None

    # -- Read operations --

    def resolve(self, commit_id: str | bytes) -> Commit:
        """Look up a commit by its hex id.

        Raises:
            NotFound: ``commit_id`` is malformed, unknown, or names
                something other than a commit.
        """
        text = commit_id
        if isinstance(text, bytes):
            text = text.decode("ascii", errors="replace")
        if not _COMMIT_ID.fullmatch(text):
            raise NotFound(text)
        try:
            obj = self.repo[text.lower().encode("ascii")]
        except KeyError:
            raise NotFound(text) from None
        if not isinstance(obj, Commit):
            raise NotFound(text)
        return obj

    def tree(self, commit: Commit) -> Tree:
        """The snapshot a commit references."""
        return self.repo[commit.tree]

    def read(self, commit: Commit, name: bytes) -> bytes | None:
        """Blob content of entry ``name`` as of ``commit``, or None."""
        tree = self.tree(commit)
        if name not in tree:
            return None
        _, sha = tree[name]
        return self.repo[sha].data

    # -- Write operations --

    def stage(self) -> Staging:
        """A staging tree seeded from the current tip."""
        return Staging(self.repo, self.tip)

    def commit(
        self,
        staging: Staging,
        *,
        message: str,
        author: Identity,
        committer: Identity,
    ) -> str | None:
        """Commit a staged tree and advance the branch.

        Nothing is written when the staged tree equals its seed.

        Returns:
            The new commit id, or None if there was nothing to commit.

        Raises:
            ConcurrencyError: The branch no longer points at the commit
                ``staging`` was seeded from.
        """
        if not staging.changed:
            logger.debug("Tree unchanged on %s, nothing to commit", self._branch)
            return None

        commit = Commit()
        commit.tree = staging.write()
        commit.parents = [staging.parent] if staging.parent is not None else []
        commit.author = author.as_bytes()
        commit.committer = committer.as_bytes()
        commit.commit_time = commit.author_time = int(time.time())
        commit.commit_timezone = commit.author_timezone = 0
        commit.encoding = b"UTF-8"
        commit.message = message.encode("utf-8")
        self.repo.object_store.add_object(commit)

        # CAS the branch from the seed tip to the new commit
        if staging.parent is None:
            advanced = self.repo.refs.add_if_new(self._ref, commit.id)
        else:
            advanced = self.repo.refs.set_if_equals(
                self._ref, staging.parent, commit.id
            )
        if not advanced:
            raise ConcurrencyError(
                f"Branch {self._branch!r} moved from {staging.parent!r}. Retry the write."
            )

        commit_id = commit.id.decode("ascii")
        logger.debug("Committed %s on %s: %s", commit_id[:8], self._branch, message)
        return commit_id

    def write(
        self,
        apply: Callable[[Staging], None],
        *,
        message: str,
        author: Identity,
        committer: Identity,
        retries: int = 0,
    ) -> str | None:
        """Stage one change against the tip and commit it.

        On a concurrent branch update the tip is re-read and ``apply``
        runs again on a fresh staging tree, up to ``retries`` times.
        """
        attempt = 0
        while True:
            staging = self.stage()
            apply(staging)
            try:
                return self.commit(
                    staging, message=message, author=author, committer=committer
                )
            except ConcurrencyError:
                if attempt >= retries:
                    raise
                attempt += 1
                logger.warning(
                    "Branch %s moved during write, retrying (%d/%d)",
                    self._branch,
                    attempt,
                    retries,
                )

    # -- History --

    def history(self, name: bytes, *, limit: int | None = None) -> Iterator[Commit]:
        """Yield commits that changed entry ``name``, newest first.

        Args:
            name: Tree entry name to follow.
            limit: Maximum number of commits (None for all).
        """
        tip = self.tip
        if tip is None or limit == 0:
            return
        walker = self.repo.get_walker(include=[tip], paths=[name], max_entries=limit)
        for entry in walker:
            yield entry.commit
