"""Request validation interceptors.

Messages are validated through whichever of these methods they define:
``validate_all()``, ``validate(all_fields)`` or a legacy ``validate()``.
A validation method signals failure by raising an exception (or by
returning one); the interceptors turn it into an INVALID_ARGUMENT status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from grpc_middleware.status import Code, StatusError

OnValidationErrCallback = Callable[[Any, BaseException], None]

_CO_VARARGS = 0x04


@dataclass
class _Options:
    should_fail_fast: bool = False
    on_validation_err_callback: Optional[OnValidationErrCallback] = None

    @classmethod
    def from_options(cls, options) -> "_Options":
        result = cls()
        for option in options:
            option(result)
        return result


Option = Callable[[_Options], None]


def with_on_validation_err_callback(callback: OnValidationErrCallback) -> Option:
    """Register a function called with (ctx, error) on every validation failure."""

    def option(opts: _Options) -> None:
        opts.on_validation_err_callback = callback

    return option


def with_fail_fast() -> Option:
    """Stop validating after the first error.

    Ignored for messages that only offer the legacy ``validate()`` method.
    """

    def option(opts: _Options) -> None:
        opts.should_fail_fast = True

    return option


def _arity(method: Callable[..., Any]) -> Tuple[bool, bool]:
    """Return whether ``method`` can be called with no argument and with one."""
    func = getattr(method, "__func__", method)
    code = getattr(func, "__code__", None)
    if code is None:
        return True, False
    positional = code.co_argcount
    if getattr(method, "__self__", None) is not None:
        positional -= 1
    defaults = len(getattr(func, "__defaults__", None) or ())
    required = max(positional - defaults, 0)
    has_varargs = bool(code.co_flags & _CO_VARARGS)
    no_arg = required == 0
    one_arg = required <= 1 and (positional >= 1 or has_varargs)
    return no_arg, one_arg


def _run(method: Callable[..., Any], *args: Any) -> Optional[BaseException]:
    try:
        result = method(*args)
    except Exception as exc:  # a failing validator reports through its exception
        return exc
    if isinstance(result, BaseException):
        return result
    return None


def _find_error(req_or_res: Any, should_fail_fast: bool) -> Optional[BaseException]:
    validate_method = getattr(req_or_res, "validate", None)
    if not callable(validate_method):
        validate_method = None

    if should_fail_fast:
        if validate_method is None:
            return None
        no_arg, one_arg = _arity(validate_method)
        if no_arg:
            return _run(validate_method)
        if one_arg:
            return _run(validate_method, False)
        return None

    validate_all = getattr(req_or_res, "validate_all", None)
    if callable(validate_all):
        return _run(validate_all)
    if validate_method is None:
        return None
    no_arg, one_arg = _arity(validate_method)
    if one_arg:
        return _run(validate_method, True)
    if no_arg:
        return _run(validate_method)
    return None


def validate(
    ctx: Any,
    req_or_res: Any,
    should_fail_fast: bool,
    on_validation_err_callback: Optional[OnValidationErrCallback],
) -> None:
    """Validate a message, raising an INVALID_ARGUMENT StatusError if it is invalid."""
    err = _find_error(req_or_res, should_fail_fast)
    if err is None:
        return None
    if on_validation_err_callback is not None:
        on_validation_err_callback(ctx, err)
    raise StatusError(Code.INVALID_ARGUMENT, str(err)) from err


def unary_server_interceptor(*options: Option) -> Callable[..., Any]:
    """Return an interceptor rejecting invalid requests before the handler runs.

    The interceptor is called as ``interceptor(ctx, req, info, handler)``.
    """
    opts = _Options.from_options(options)

    def interceptor(ctx: Any, req: Any, info: Any, handler: Callable[[Any, Any], Any]) -> Any:
        validate(ctx, req, opts.should_fail_fast, opts.on_validation_err_callback)
        return handler(ctx, req)

    return interceptor


def unary_client_interceptor(*options: Option) -> Callable[..., Any]:
    """Return an interceptor rejecting invalid requests before they are sent.

    The interceptor is called as
    ``interceptor(ctx, method, req, reply, cc, invoker, *call_options)``.
    """
    opts = _Options.from_options(options)

    def interceptor(
        ctx: Any,
        method: str,
        req: Any,
        reply: Any,
        cc: Any,
        invoker: Callable[..., Any],
        *call_options: Any,
    ) -> Any:
        validate(ctx, req, opts.should_fail_fast, opts.on_validation_err_callback)
        return invoker(ctx, method, req, reply, cc, *call_options)

    return interceptor


class _RecvWrapper:
    """A server stream that validates every message it receives."""

    def __init__(self, stream: Any, options: _Options) -> None:
        self.server_stream = stream
        self._options = options

    def context(self) -> Any:
        return self.server_stream.context()

    def send_msg(self, message: Any) -> Any:
        return self.server_stream.send_msg(message)

    def recv_msg(self, message: Any = None) -> Any:
        received = self.server_stream.recv_msg(message)
        validate(
            self.context(),
            message if received is None else received,
            self._options.should_fail_fast,
            self._options.on_validation_err_callback,
        )
        return received

    def __getattr__(self, name: str) -> Any:
        if name == "server_stream":
            raise AttributeError(name)
        return getattr(self.server_stream, name)


def stream_server_interceptor(*options: Option) -> Callable[..., Any]:
    """Return a stream interceptor validating each received message.

    The interceptor is called as ``interceptor(srv, stream, info, handler)``;
    invalid messages are rejected when the handler receives them.
    """
    opts = _Options.from_options(options)

    def interceptor(srv: Any, stream: Any, info: Any, handler: Callable[[Any, Any], Any]) -> Any:
        return handler(srv, _RecvWrapper(stream, opts))

    return interceptor