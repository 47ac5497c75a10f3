"""Request contexts and a server stream wrapper whose context can be replaced."""

from __future__ import annotations

from typing import Any, Hashable, Optional

_MISSING = object()


class Context:
    """An immutable chain of key/value pairs carried along with a call."""

    __slots__ = ("_parent", "_key", "_value")

    def __init__(
        self,
        parent: Optional["Context"] = None,
        key: Hashable = _MISSING,
        value: Any = None,
    ) -> None:
        self._parent = parent
        self._key = key
        self._value = value

    def with_value(self, key: Hashable, value: Any) -> "Context":
        """Return a child context that maps ``key`` to ``value``."""
        return Context(self, key, value)

    def value(self, key: Hashable) -> Any:
        """Return the nearest value stored under ``key``, or None."""
        ctx: Optional[Context] = self
        while ctx is not None:
            if ctx._key is not _MISSING and ctx._key == key:
                return ctx._value
            ctx = ctx._parent
        return None

    def __repr__(self) -> str:
        depth = 0
        ctx = self._parent
        while ctx is not None:
            depth += 1
            ctx = ctx._parent
        return f"Context(depth={depth})"


_BACKGROUND = Context()


def background() -> Context:
    """Return the empty root context."""
    return _BACKGROUND


class WrappedServerStream:
    """A server stream whose context can be overwritten.

    Every attribute not defined here is looked up on the wrapped stream.
    """

    def __init__(self, stream: Any, wrapped_context: Optional[Context] = None) -> None:
        self.server_stream = stream
        self.wrapped_context = (
            wrapped_context if wrapped_context is not None else stream.context()
        )

    def context(self) -> Context:
        """Return the wrapper's own context instead of the stream's."""
        return self.wrapped_context

    def send_msg(self, message: Any) -> Any:
        return self.server_stream.send_msg(message)

    def recv_msg(self, message: Any) -> Any:
        return self.server_stream.recv_msg(message)

    def __getattr__(self, name: str) -> Any:
        if name == "server_stream":
            raise AttributeError(name)
        return getattr(self.server_stream, name)


def wrap_server_stream(stream: Any) -> WrappedServerStream:
    """Wrap ``stream`` so its context can be replaced; existing wrappers are reused."""
    if isinstance(stream, WrappedServerStream):
        return stream
    return WrappedServerStream(stream, stream.context())