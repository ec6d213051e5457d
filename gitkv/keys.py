"""Key codec: map store keys to tree entry names and back."""

import base64
import binascii
import io
import pickle
from typing import Any

_RESERVED = ("", ".", "..")

# Tokens are persisted as entry names, so the pickle format must not
# follow the interpreter's default protocol.
PICKLE_PROTOCOL = 4


def _check_ordered(key: Any) -> None:
    if isinstance(key, (set, frozenset)):
        raise ValueError(f"Invalid key: {key!r} (set members have no stable order)")
    if isinstance(key, (tuple, list)):
        for item in key:
            _check_ordered(item)
    elif isinstance(key, dict):
        for k, v in key.items():
            _check_ordered(k)
            _check_ordered(v)


def _dumps(key: Any) -> bytes:
    buf = io.BytesIO()
    pickler = pickle.Pickler(buf, protocol=PICKLE_PROTOCOL)
    # No memo: equal keys built from distinct objects pickle identically
    pickler.fast = True
    pickler.dump(key)
    return buf.getvalue()


class KeyCodec:
    """Canonicalizes keys into path tokens.

    String keys are used as-is. Any other key is pickled (protocol 4,
    without memoization) and the bytes are wrapped in URL-safe base64,
    which keeps the token a legal tree entry name.

    Keys must pickle deterministically: equal keys have to produce the
    same bytes in every process. Sets and frozensets iterate in hash
    order, which changes between runs, so they are rejected anywhere
    inside a key.

    The inverse is best-effort: a token that does not decode is
    returned unchanged, so a string key that happens to spell the
    encoding of another key comes back as that key.
    """

    def token_for(self, key: Any) -> str:
        if isinstance(key, str):
            if key in _RESERVED or "/" in key or "\0" in key:
                raise ValueError(f"Invalid key: {key!r}")
            return key
        _check_ordered(key)
        try:
            raw = _dumps(key)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise ValueError(f"Invalid key: {key!r} (not picklable)") from e
        return base64.urlsafe_b64encode(raw).decode("ascii")

    def key_for(self, token: str | bytes) -> Any:
        if isinstance(token, bytes):
            token = token.decode("utf-8", errors="surrogateescape")
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii"))
        except (UnicodeEncodeError, binascii.Error, ValueError):
            return token
        try:
            return pickle.loads(raw)
        except Exception:
            return token

    def entry_name(self, key: Any) -> bytes:
        """The tree entry name (bytes) for a key."""
        return self.token_for(key).encode("utf-8", errors="surrogateescape")
