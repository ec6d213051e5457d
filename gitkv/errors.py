"""gitkv error types."""


class NotFound(LookupError):
    """Raised when a commit id does not name a commit in the repository.

    A missing key is not an error: reads return a default instead.
    """

    def __init__(self, commit_id: str) -> None:
        self.commit_id = commit_id
        super().__init__(f"No commit {commit_id!r} in repository")


class EncodingError(ValueError):
    """Raised when stored bytes cannot be decoded into a value.

    The original decoder exception is chained as ``__cause__``.
    """


class ConcurrencyError(Exception):
    """Raised when the branch moved between staging and commit.

    Another writer advanced the branch after this write read its tip.
    Serialize writers, or configure ``retries`` on the store to
    restage the write against the new tip.
    """
