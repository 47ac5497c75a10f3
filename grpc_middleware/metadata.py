"""Convenience handling of call metadata carried inside contexts."""

from __future__ import annotations

import base64
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

_BIN_HDR_SUFFIX = "-bin"


class _MetadataKey:
    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"<metadata key {self.name}>"


_INCOMING_KEY = _MetadataKey("incoming")
_OUTGOING_KEY = _MetadataKey("outgoing")


def encode_key_value(key: str, value: Union[str, bytes]) -> Tuple[str, str]:
    """Lower-case the key; base64-encode the value of binary ("-bin") keys."""
    key = key.lower()
    if key.endswith(_BIN_HDR_SUFFIX):
        raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        return key, base64.b64encode(raw).decode("ascii")
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    return key, value


class MD(dict):
    """Metadata: lower-case keys mapped to lists of string values."""

    def __init__(self, mapping: Optional[Mapping[str, Iterable[str]]] = None) -> None:
        super().__init__()
        if mapping:
            for key, values in mapping.items():
                self[key] = list(values)

    def clone(self, *copied_keys: str) -> "MD":
        """Deep-copy the metadata, keeping only ``copied_keys`` if any are given."""
        allowed = {k.casefold() for k in copied_keys}
        return MD(
            {
                key: list(values)
                for key, values in self.items()
                if not allowed or key.casefold() in allowed
            }
        )

    def to_outgoing(self, ctx: Any) -> Any:
        """Return a child of ``ctx`` carrying this metadata for outgoing calls."""
        return ctx.with_value(_OUTGOING_KEY, self)

    def to_incoming(self, ctx: Any) -> Any:
        """Return a child of ``ctx`` carrying this metadata as incoming metadata."""
        return ctx.with_value(_INCOMING_KEY, self)

    def get(self, key: str) -> str:  # type: ignore[override]
        """Return the first value for ``key``, or an empty string."""
        k, _ = encode_key_value(key, "")
        values = dict.get(self, k)
        if not values:
            return ""
        return values[0]

    def delete(self, key: str) -> "MD":
        """Remove all values for ``key``."""
        k, _ = encode_key_value(key, "")
        self.pop(k, None)
        return self

    def set(self, key: str, value: Union[str, bytes]) -> "MD":
        """Replace all values for ``key`` with ``value``."""
        k, v = encode_key_value(key, value)
        self[k] = [v]
        return self

    def add(self, key: str, value: Union[str, bytes]) -> "MD":
        """Append ``value`` to the values for ``key``."""
        k, v = encode_key_value(key, value)
        self.setdefault(k, []).append(v)
        return self


def pairs(*kv: str) -> MD:
    """Build metadata from alternating keys and values; keys are lower-cased."""
    if len(kv) % 2 == 1:
        raise ValueError(f"pairs got an odd number of input pairs for metadata: {len(kv)}")
    md = MD()
    for key, value in zip(kv[::2], kv[1::2]):
        md.setdefault(key.lower(), []).append(value)
    return md


def _extract(ctx: Any, key: _MetadataKey) -> MD:
    md = ctx.value(key)
    if md is None:
        return MD()
    return MD({k.lower(): v for k, v in md.items()})


def extract_incoming(ctx: Any) -> MD:
    """Return a copy of the incoming metadata of ``ctx``, or an empty MD."""
    return _extract(ctx, _INCOMING_KEY)


def extract_outgoing(ctx: Any) -> MD:
    """Return a copy of the outgoing metadata of ``ctx``, or an empty MD."""
    return _extract(ctx, _OUTGOING_KEY)