# grpc_middleware

Building blocks for RPC interceptors. The package uses only the standard
library.

- `grpc_middleware.wrappers`: `Context`, which is an immutable chain of
  key/value pairs, and `background()`, which returns the empty root context.
  Also `WrappedServerStream` and `wrap_server_stream`, for a server stream
  whose context can be replaced.
- `grpc_middleware.metadata`: `MD`, a dict of lower-case keys mapped to lists
  of values, with `pairs`, `encode_key_value`, `extract_incoming` and
  `extract_outgoing`.
- `grpc_middleware.status`: `Code`, `Status`, `StatusError`, `from_error` and
  `code_of`.
- `grpc_middleware.validator`: interceptors that validate messages and reject
  invalid ones with `INVALID_ARGUMENT`.
- `grpc_middleware.prometheus`: Prometheus-style counters and histograms
  (`metrics`), their options (`options`), the `ClientMetrics` and
  `ServerMetrics` collections, and reporters that turn call events into metric
  updates (`reporter`).
- `grpc_middleware.backoff`: `jitter_up` and `exponent_base2`.

## Installation

```
pip install .
```

## Contexts and stream wrappers

```python
from grpc_middleware.wrappers import background, wrap_server_stream

ctx = background().with_value("request-id", 7)
ctx.value("request-id")        # 7
ctx.value("missing")           # None

wrapped = wrap_server_stream(stream)   # any object with context(), send_msg(), recv_msg()
wrapped.wrapped_context = wrapped.context().with_value("user", "alice")
```

`wrap_server_stream` returns an existing `WrappedServerStream` unchanged. Any
attribute the wrapper does not define is looked up on the wrapped stream.

## Metadata

This example copies the incoming metadata of a server call into a new
outgoing context:

```python
from grpc_middleware.metadata import extract_incoming, pairs
from grpc_middleware.wrappers import background

ctx = pairs("authorization", "Bearer token").to_incoming(background())
md = extract_incoming(ctx).clone("authorization")
client_ctx = md.set("x-client-header", "2").set("x-another", "3").to_outgoing(ctx)
```

- `get` returns the first value for a key, or `""` if the key is absent.
- `set`, `add` and `delete` change the `MD` in place and return it, so calls
  can be chained.
- `clone()` makes a deep copy. `clone(*keys)` copies only the keys listed,
  and matches them without regard to case.
- Keys are stored in lower case. Values under keys that end in `-bin` are
  base64 encoded.
- `pairs` raises `ValueError` when it is given an odd number of arguments.

## Status codes

```python
from grpc_middleware.status import Code, StatusError, code_of, from_error

err = StatusError(Code.FAILED_PRECONDITION, "not ready")
str(err.code)          # "FailedPrecondition"
code_of(err)           # Code.FAILED_PRECONDITION
from_error(None).code  # Code.OK
```

`from_error` does the following:

- A status error found on the exception or its `__cause__` chain keeps its
  code.
- Cancellation becomes `CANCELED`.
- A timeout becomes `DEADLINE_EXCEEDED`.
- Anything else becomes `UNKNOWN`.

## Validation

```python
from grpc_middleware.validator import (
    stream_server_interceptor,
    unary_client_interceptor,
    unary_server_interceptor,
    with_fail_fast,
    with_on_validation_err_callback,
)

errors = []
interceptor = unary_server_interceptor(
    with_fail_fast(),
    with_on_validation_err_callback(lambda ctx, err: errors.append(str(err))),
)
response = interceptor(ctx, request, info, handler)   # handler(ctx, request)
```

A message can provide `validate_all()`, `validate(all_fields)` or a legacy
`validate()`. It signals failure by raising an exception or by returning one.
The validator picks the method as follows:

- Without fail-fast, it prefers `validate_all()`, then `validate(True)`, then
  `validate()`.
- With fail-fast, it calls `validate()` or `validate(False)`.

When a message is invalid, the callback is invoked first. Then `StatusError`
is raised with code `INVALID_ARGUMENT`.

- `unary_client_interceptor` validates before it calls the invoker.
- `stream_server_interceptor` wraps the stream so that every received message
  is validated.

## Metrics

```python
from grpc_middleware.prometheus.client_metrics import ClientMetrics
from grpc_middleware.prometheus.options import (
    GrpcType,
    with_client_counter_options,
    with_client_handling_time_histogram,
    with_namespace,
)
from grpc_middleware.prometheus.reporter import CallMeta, Reportable
from grpc_middleware.wrappers import background

metrics = ClientMetrics(
    with_client_counter_options(with_namespace("myapp")),
    with_client_handling_time_histogram(),
)

reportable = Reportable(client_metrics=metrics)
reporter, ctx = reportable.client_reporter(
    background(), CallMeta(GrpcType.UNARY, "pkg.Service", "Ping")
)
reporter.post_call(None, 0.012)

metrics.client_handled_counter.with_label_values(
    "unary", "pkg.Service", "Ping", "OK"
).value                                    # 1.0
```

`Reportable` creates a reporter for each call and counts the call as started.
The `Reporter` records the following:

- `post_call`: handled calls, by status code.
- `post_msg_send` and `post_msg_receive`: sent and received stream messages.
- The handling-time and per-message histograms, when they are switched on.

Durations can be given as seconds or as `datetime.timedelta`. Passing
`with_exemplar_from_context(fn)` in `Reportable(opts=...)` attaches exemplar
labels, taken from the call context, to every update.

`ServerMetrics` accepts `with_server_counter_options` and
`with_server_handling_time_histogram`. Its `initialize_metrics` method takes a
mapping of service names to `MethodInfo` lists, and creates the zero-valued
series for every method and every status code.

Both collections have `describe()` and `collect()`. They return the `Desc`
objects and the live `Counter` / `Histogram` objects.

## Backoff

```python
from grpc_middleware.backoff import exponent_base2, jitter_up

delay = jitter_up(10.0, 0.1)   # somewhere in [9.0, 11.0]
exponent_base2(3)              # 4
```

`jitter_up` also accepts a `datetime.timedelta`.

## What the package does not do

- It has no RPC transport. The interceptors are plain callables, and they are
  not registered with any server or channel library.
- Nothing here calls the reporters automatically. Your interceptor code has
  to create them through `Reportable` and call their `post_*` methods.
- Metrics are kept in process only. There is no text exposition format, no
  registry and no HTTP endpoint for scraping.

## Running the tests

```
pip install .[test]
pytest
```