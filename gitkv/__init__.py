"""gitkv: Versioned key-value store on git."""

from .content_types import ContentType, json_value, pickle_value, yaml_value
from .errors import ConcurrencyError, EncodingError, NotFound
from .keys import KeyCodec
from .record import CommitRecord, Identity
from .repo import memory_repo, open_repo
from .staging import Staging
from .store import DEFAULT_LOG_LIMIT, Store, store
from .versioned import Versioned

__all__ = [
    "DEFAULT_LOG_LIMIT",
    "CommitRecord",
    "ConcurrencyError",
    "ContentType",
    "EncodingError",
    "Identity",
    "KeyCodec",
    "NotFound",
    "Staging",
    "Store",
    "Versioned",
    "json_value",
    "memory_repo",
    "open_repo",
    "pickle_value",
    "store",
    "yaml_value",
]
