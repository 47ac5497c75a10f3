"""Options for the metric collections and their interceptors."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from grpc_middleware.prometheus.metrics import (
    DEF_BUCKETS,
    CounterOpts,
    HistogramOpts,
    HistogramVec,
)

CounterOption = Callable[[CounterOpts], None]
HistogramOption = Callable[[HistogramOpts], None]
ExemplarFromContext = Callable[[Any], Optional[Mapping[str, str]]]

_METHOD_LABELS = ("grpc_type", "grpc_service", "grpc_method")


class GrpcType(str, enum.Enum):
    """The shape of a call."""

    UNARY = "unary"
    CLIENT_STREAM = "client_stream"
    SERVER_STREAM = "server_stream"
    BIDI_STREAM = "bidi_stream"

    def __str__(self) -> str:
        return self.value


class Kind(str, enum.Enum):
    """Whether an interceptor runs on the client or the server."""

    CLIENT = "client"
    SERVER = "server"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class MethodInfo:
    """A registered method and whether each side streams."""

    name: str
    is_client_stream: bool = False
    is_server_stream: bool = False


def type_from_method_info(method_info: MethodInfo) -> GrpcType:
    """Return the call type matching the streaming flags of a method."""
    if method_info.is_client_stream and method_info.is_server_stream:
        return GrpcType.BIDI_STREAM
    if method_info.is_client_stream:
        return GrpcType.CLIENT_STREAM
    if method_info.is_server_stream:
        return GrpcType.SERVER_STREAM
    return GrpcType.UNARY


def _apply_counter_options(options: Sequence[CounterOption], base: CounterOpts) -> CounterOpts:
    opts = dataclasses.replace(base, const_labels=dict(base.const_labels))
    for option in options:
        option(opts)
    return opts


def _apply_histogram_options(options: Sequence[HistogramOption], base: HistogramOpts) -> HistogramOpts:
    opts = dataclasses.replace(base, const_labels=dict(base.const_labels))
    for option in options:
        option(opts)
    return opts


def with_const_labels(labels: Mapping[str, str]) -> CounterOption:
    """Add constant labels to counters."""

    def option(opts: CounterOpts) -> None:
        opts.const_labels = dict(labels)

    return option


def with_subsystem(subsystem: str) -> CounterOption:
    """Set the subsystem of counters."""

    def option(opts: CounterOpts) -> None:
        opts.subsystem = subsystem

    return option


def with_namespace(namespace: str) -> CounterOption:
    """Set the namespace of counters."""

    def option(opts: CounterOpts) -> None:
        opts.namespace = namespace

    return option


def with_histogram_buckets(buckets: Sequence[float]) -> HistogramOption:
    """Use custom bucket bounds for histograms."""

    def option(opts: HistogramOpts) -> None:
        opts.buckets = list(buckets)

    return option


def with_histogram_opts(opts: HistogramOpts) -> HistogramOption:
    """Copy buckets and native-histogram settings, keeping name and labels."""

    def option(target: HistogramOpts) -> None:
        target.buckets = opts.buckets
        target.native_histogram_bucket_factor = opts.native_histogram_bucket_factor
        target.native_histogram_zero_threshold = opts.native_histogram_zero_threshold
        target.native_histogram_max_bucket_number = opts.native_histogram_max_bucket_number
        target.native_histogram_min_reset_duration = opts.native_histogram_min_reset_duration
        target.native_histogram_max_zero_threshold = opts.native_histogram_max_zero_threshold

    return option


def with_histogram_const_labels(labels: Mapping[str, str]) -> HistogramOption:
    """Add constant labels to histograms."""

    def option(opts: HistogramOpts) -> None:
        opts.const_labels = dict(labels)

    return option


def with_histogram_subsystem(subsystem: str) -> HistogramOption:
    """Set the subsystem of histograms."""

    def option(opts: HistogramOpts) -> None:
        opts.subsystem = subsystem

    return option


def with_histogram_namespace(namespace: str) -> HistogramOption:
    """Set the namespace of histograms."""

    def option(opts: HistogramOpts) -> None:
        opts.namespace = namespace

    return option


@dataclass
class _Config:
    exemplar_fn: Optional[ExemplarFromContext] = None

    @classmethod
    def from_options(cls, options: Sequence[Callable[["_Config"], None]]) -> "_Config":
        config = cls()
        for option in options:
            option(config)
        return config


def with_exemplar_from_context(exemplar_fn: ExemplarFromContext) -> Callable[[_Config], None]:
    """Derive an exemplar for every counter and histogram update from the call context."""

    def option(config: _Config) -> None:
        config.exemplar_fn = exemplar_fn

    return option


def _histogram_vec(name: str, help_text: str, options: Sequence[HistogramOption]) -> HistogramVec:
    opts = _apply_histogram_options(
        options, HistogramOpts(name=name, help=help_text, buckets=DEF_BUCKETS)
    )
    return HistogramVec(opts, _METHOD_LABELS)


@dataclass
class _ClientMetricsConfig:
    counter_opts: Tuple[CounterOption, ...] = ()
    client_handled_histogram: Optional[HistogramVec] = None
    client_stream_recv_histogram: Optional[HistogramVec] = None
    client_stream_send_histogram: Optional[HistogramVec] = None

    @classmethod
    def from_options(cls, options: Sequence[Callable[["_ClientMetricsConfig"], None]]) -> "_ClientMetricsConfig":
        config = cls()
        for option in options:
            option(config)
        return config

    def counter(self, name: str, help_text: str) -> CounterOpts:
        return _apply_counter_options(self.counter_opts, CounterOpts(name=name, help=help_text))


@dataclass
class _ServerMetricsConfig:
    counter_opts: Tuple[CounterOption, ...] = ()
    server_handled_histogram: Optional[HistogramVec] = None

    @classmethod
    def from_options(cls, options: Sequence[Callable[["_ServerMetricsConfig"], None]]) -> "_ServerMetricsConfig":
        config = cls()
        for option in options:
            option(config)
        return config

    def counter(self, name: str, help_text: str) -> CounterOpts:
        return _apply_counter_options(self.counter_opts, CounterOpts(name=name, help=help_text))


def with_client_counter_options(*options: CounterOption) -> Callable[[_ClientMetricsConfig], None]:
    """Set the options applied to every client counter."""

    def option(config: _ClientMetricsConfig) -> None:
        config.counter_opts = tuple(options)

    return option


def with_client_handling_time_histogram(*options: HistogramOption) -> Callable[[_ClientMetricsConfig], None]:
    """Record the handling time of client calls in a histogram."""

    def option(config: _ClientMetricsConfig) -> None:
        config.client_handled_histogram = _histogram_vec(
            "grpc_client_handling_seconds",
            "Histogram of response latency (seconds) of the gRPC until it is finished by the application.",
            options,
        )

    return option


def with_client_stream_recv_histogram(*options: HistogramOption) -> Callable[[_ClientMetricsConfig], None]:
    """Record the time taken to receive each stream message."""

    def option(config: _ClientMetricsConfig) -> None:
        config.client_stream_recv_histogram = _histogram_vec(
            "grpc_client_msg_recv_handling_seconds",
            "Histogram of response latency (seconds) of the gRPC single message receive.",
            options,
        )

    return option


def with_client_stream_send_histogram(*options: HistogramOption) -> Callable[[_ClientMetricsConfig], None]:
    """Record the time taken to send each stream message."""

    def option(config: _ClientMetricsConfig) -> None:
        config.client_stream_send_histogram = _histogram_vec(
            "grpc_client_msg_send_handling_seconds",
            "Histogram of response latency (seconds) of the gRPC single message send.",
            options,
        )

    return option


def with_server_counter_options(*options: CounterOption) -> Callable[[_ServerMetricsConfig], None]:
    """Set the options applied to every server counter."""

    def option(config: _ServerMetricsConfig) -> None:
        config.counter_opts = tuple(options)

    return option


def with_server_handling_time_histogram(*options: HistogramOption) -> Callable[[_ServerMetricsConfig], None]:
    """Record the handling time of server calls in a histogram."""

    def option(config: _ServerMetricsConfig) -> None:
        config.server_handled_histogram = _histogram_vec(
            "grpc_server_handling_seconds",
            "Histogram of response latency (seconds) of gRPC that had been application-level handled by the server.",
            options,
        )

    return option