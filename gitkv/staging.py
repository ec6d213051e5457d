"""Staging: one pending change to a branch's tree."""

import stat

from dulwich.objects import Blob, Tree
from dulwich.repo import BaseRepo

ENTRY_MODE = stat.S_IFREG | 0o644


class Staging:
    """A mutable copy of the tip's tree.

    Seeded from the tree of ``parent`` (an empty tree when the branch
    has no commits yet). Entries are added or removed in memory;
    nothing reaches the object store until ``write()``.

    ``changed`` reports whether the staged tree differs from the seed,
    which is what decides whether a commit gets created.
    """

    def __init__(self, repo: BaseRepo, parent: bytes | None) -> None:
        self._repo = repo
        self.parent = parent
        self.tree = Tree()
        self._blobs: dict[bytes, Blob] = {}

        if parent is not None:
            seed = repo[repo[parent].tree]
            for entry in seed.items():
                self.tree.add(entry.path, entry.mode, entry.sha)
        self.seed_id = self.tree.id

    def __repr__(self) -> str:
        parent = self.parent.decode("ascii")[:8] if self.parent else None
        return f"Staging(parent={parent}, entries={len(self.tree)}, changed={self.changed})"

    # -- Deltas --

    def add(self, name: bytes, data: bytes) -> None:
        """Add or replace the entry ``name``."""
        blob = Blob.from_string(data)
        self._blobs[blob.id] = blob
        self.tree.add(name, ENTRY_MODE, blob.id)

    def remove(self, name: bytes) -> None:
        """Remove the entry ``name`` if present."""
        if name in self.tree:
            del self.tree[name]

    def remove_all(self) -> None:
        """Remove every entry."""
        for entry in list(self.tree.items()):
            del self.tree[entry.path]

    # -- Result --

    @property
    def changed(self) -> bool:
        return self.tree.id != self.seed_id

    def write(self) -> bytes:
        """Store staged blobs and the tree. Returns the tree id."""
        for blob in self._blobs.values():
            self._repo.object_store.add_object(blob)
        self._repo.object_store.add_object(self.tree)
        return self.tree.id
