"""Reporters that turn call events into metric updates."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence, Tuple, Union

from grpc_middleware.prometheus.metrics import CounterVec, HistogramVec
from grpc_middleware.prometheus.options import GrpcType, Kind, _Config
from grpc_middleware.status import from_error

if TYPE_CHECKING:
    from grpc_middleware.prometheus.client_metrics import ClientMetrics
    from grpc_middleware.prometheus.server_metrics import ServerMetrics

Duration = Union[float, datetime.timedelta]


def _seconds(duration: Duration) -> float:
    if isinstance(duration, datetime.timedelta):
        return duration.total_seconds()
    return float(duration)


@dataclass(frozen=True)
class CallMeta:
    """What is known about a call when it starts."""

    typ: GrpcType
    service: str
    method: str


@dataclass
class Reporter:
    """Records the events of one call into client or server metrics."""

    kind: Kind
    typ: GrpcType
    service: str
    method: str
    client_metrics: Optional["ClientMetrics"] = None
    server_metrics: Optional["ServerMetrics"] = None
    exemplar: Optional[Mapping[str, str]] = None

    def _labels(self) -> Tuple[str, str, str]:
        return str(self.typ), self.service, self.method

    def _increment(self, vec: CounterVec, *label_values: str) -> None:
        vec.with_label_values(*label_values).add_with_exemplar(1, self.exemplar)

    def _observe(self, vec: Optional[HistogramVec], value: float) -> None:
        if vec is not None:
            vec.with_label_values(*self._labels()).observe_with_exemplar(value, self.exemplar)

    def post_call(self, err: Optional[BaseException], rpc_duration: Duration) -> None:
        """Count the finished call under its status code and record its duration."""
        code = str(from_error(err).code)
        if self.kind is Kind.SERVER:
            metrics = self.server_metrics
            self._increment(metrics.server_handled_counter, *self._labels(), code)
            self._observe(metrics.server_handled_histogram, _seconds(rpc_duration))
        elif self.kind is Kind.CLIENT:
            metrics = self.client_metrics
            self._increment(metrics.client_handled_counter, *self._labels(), code)
            self._observe(metrics.client_handled_histogram, _seconds(rpc_duration))

    def post_msg_send(self, message: Any, err: Optional[BaseException], send_duration: Duration) -> None:
        """Count a sent stream message."""
        if self.kind is Kind.SERVER:
            self._increment(self.server_metrics.server_stream_msg_sent, *self._labels())
        elif self.kind is Kind.CLIENT:
            metrics = self.client_metrics
            self._increment(metrics.client_stream_msg_sent, *self._labels())
            self._observe(metrics.client_stream_send_histogram, _seconds(send_duration))

    def post_msg_receive(self, message: Any, err: Optional[BaseException], recv_duration: Duration) -> None:
        """Count a received stream message."""
        if self.kind is Kind.SERVER:
            self._increment(self.server_metrics.server_stream_msg_received, *self._labels())
        elif self.kind is Kind.CLIENT:
            metrics = self.client_metrics
            self._increment(metrics.client_stream_msg_received, *self._labels())
            self._observe(metrics.client_stream_recv_histogram, _seconds(recv_duration))


@dataclass
class Reportable:
    """Creates a reporter for each call and counts the call as started."""

    client_metrics: Optional["ClientMetrics"] = None
    server_metrics: Optional["ServerMetrics"] = None
    opts: Sequence[Any] = field(default_factory=tuple)

    def server_reporter(self, ctx: Any, meta: CallMeta) -> Tuple[Reporter, Any]:
        """Start reporting a server call; return the reporter and the context."""
        return self._reporter(ctx, meta, Kind.SERVER)

    def client_reporter(self, ctx: Any, meta: CallMeta) -> Tuple[Reporter, Any]:
        """Start reporting a client call; return the reporter and the context."""
        return self._reporter(ctx, meta, Kind.CLIENT)

    def _reporter(self, ctx: Any, meta: CallMeta, kind: Kind) -> Tuple[Reporter, Any]:
        config = _Config.from_options(self.opts)
        reporter = Reporter(
            kind=kind,
            typ=meta.typ,
            service=meta.service,
            method=meta.method,
            client_metrics=self.client_metrics if kind is Kind.CLIENT else None,
            server_metrics=self.server_metrics if kind is Kind.SERVER else None,
        )
        if config.exemplar_fn is not None:
            reporter.exemplar = config.exemplar_fn(ctx)

        if kind is Kind.CLIENT:
            reporter._increment(self.client_metrics.client_started_counter, *reporter._labels())
        else:
            reporter._increment(self.server_metrics.server_started_counter, *reporter._labels())
        return reporter, ctx