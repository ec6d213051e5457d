"""Repository backends: in-memory and on-disk dulwich repositories."""

import logging
import os

from dulwich.repo import BaseRepo, MemoryRepo, Repo

from .record import Identity

logger = logging.getLogger(__name__)

DEFAULT_IDENTITY = Identity("gitkv", "gitkv@localhost")
DEFAULT_BRANCH = "main"


def memory_repo() -> MemoryRepo:
    """A repository held entirely in memory."""
    return MemoryRepo()


def open_repo(
    path: str, *, bare: bool | None = None, branch: str = DEFAULT_BRANCH
) -> Repo:
    """Open the repository at ``path``, initializing it if needed.

    Args:
        path: Repository directory. Created if missing.
        bare: Whether a new repository is bare. ``None`` (default)
            makes paths ending in ``.git`` bare and anything else a
            working-tree repository.
        branch: Branch a new repository's HEAD points at.
    """
    path = os.path.abspath(os.path.expanduser(path))
    if bare is None:
        bare = path.endswith(".git")

    marker = os.path.join(path, "refs" if bare else ".git")
    if os.path.exists(marker):
        return Repo(path)

    os.makedirs(path, exist_ok=True)
    logger.info("Initializing %s repository at %s", "bare" if bare else "git", path)
    repo = Repo.init_bare(path) if bare else Repo.init(path)
    repo.refs.set_symbolic_ref(b"HEAD", f"refs/heads/{branch}".encode("utf-8"))
    return repo


def identity_from_config(repo: BaseRepo) -> Identity:
    """The ``user.name``/``user.email`` identity from the repository config.

    Falls back to ``DEFAULT_IDENTITY`` when either is unset.
    """
    config = repo.get_config()
    try:
        name = config.get((b"user",), b"name")
        email = config.get((b"user",), b"email")
    except KeyError:
        return DEFAULT_IDENTITY
    return Identity(name.decode("utf-8"), email.decode("utf-8"))
