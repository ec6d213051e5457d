"""Content types: encode/decode for stored values."""

from __future__ import annotations

import json
import pickle
from dataclasses import dataclass
from typing import Any, Callable

import yaml

from .errors import EncodingError


@dataclass
class ContentType:
    """A value codec: ``encode(value) -> bytes``, ``decode(bytes) -> value``.

    ``decode`` must accept anything ``encode`` produced. Use
    ``load()`` when reading stored blobs so decoder failures surface
    as ``EncodingError``.
    """

    encode: Callable[[Any], bytes]
    decode: Callable[[bytes], Any]

    def load(self, raw: bytes) -> Any:
        """Decode stored bytes, wrapping decoder failures."""
        try:
            return self.decode(raw)
        except Exception as e:
            raise EncodingError(f"Cannot decode stored value: {e}") from e


def yaml_value() -> ContentType:
    """YAML-encoded content type (the default).

    Handles nested scalars, lists and mappings via ``yaml.safe_dump``.
    """

    def encode(val: Any) -> bytes:
        return yaml.safe_dump(val, allow_unicode=True).encode("utf-8")

    def decode(raw: bytes) -> Any:
        return yaml.safe_load(raw.decode("utf-8"))

    return ContentType(encode=encode, decode=decode)


def json_value() -> ContentType:
    """JSON-encoded content type."""

    def encode(val: Any) -> bytes:
        return json.dumps(val, sort_keys=True).encode("utf-8")

    def decode(raw: bytes) -> Any:
        return json.loads(raw.decode("utf-8"))

    return ContentType(encode=encode, decode=decode)


def pickle_value() -> ContentType:
    """Pickle-encoded content type for arbitrary Python objects.

    Only use with repositories you trust.
    """
    return ContentType(encode=pickle.dumps, decode=pickle.loads)
