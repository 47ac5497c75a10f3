"""Counters and histograms describing the calls made by a client."""

from __future__ import annotations

from typing import Callable, Iterator, List, Optional, Union

from grpc_middleware.prometheus.metrics import CounterVec, Desc, HistogramVec
from grpc_middleware.prometheus.options import _ClientMetricsConfig

_METHOD_LABELS = ("grpc_type", "grpc_service", "grpc_method")
_HANDLED_LABELS = _METHOD_LABELS + ("grpc_code",)

ClientMetricsOption = Callable[[_ClientMetricsConfig], None]


class ClientMetrics:
    """The metric collection of a client.

    Histograms are only present when switched on through the matching option.
    """

    def __init__(self, *options: ClientMetricsOption) -> None:
        config = _ClientMetricsConfig.from_options(options)
        self.client_started_counter = CounterVec(
            config.counter(
                "grpc_client_started_total",
                "Total number of RPCs started on the client.",
            ),
            _METHOD_LABELS,
        )
        self.client_handled_counter = CounterVec(
            config.counter(
                "grpc_client_handled_total",
                "Total number of RPCs completed by the client, regardless of success or failure.",
            ),
            _HANDLED_LABELS,
        )
        self.client_stream_msg_received = CounterVec(
            config.counter(
                "grpc_client_msg_received_total",
                "Total number of RPC stream messages received by the client.",
            ),
            _METHOD_LABELS,
        )
        self.client_stream_msg_sent = CounterVec(
            config.counter(
                "grpc_client_msg_sent_total",
                "Total number of gRPC stream messages sent by the client.",
            ),
            _METHOD_LABELS,
        )
        self.client_handled_histogram: Optional[HistogramVec] = config.client_handled_histogram
        self.client_stream_recv_histogram: Optional[HistogramVec] = config.client_stream_recv_histogram
        self.client_stream_send_histogram: Optional[HistogramVec] = config.client_stream_send_histogram

    def _vectors(self) -> Iterator[Union[CounterVec, HistogramVec]]:
        yield self.client_started_counter
        yield self.client_handled_counter
        yield self.client_stream_msg_received
        yield self.client_stream_msg_sent
        for histogram in (
            self.client_handled_histogram,
            self.client_stream_recv_histogram,
            self.client_stream_send_histogram,
        ):
            if histogram is not None:
                yield histogram

    def describe(self) -> List[Desc]:
        """Return the descriptions of every metric this collection can hold."""
        return [desc for vec in self._vectors() for desc in vec.describe()]

    def collect(self) -> list:
        """Return every metric collected so far."""
        return [metric for vec in self._vectors() for metric in vec.collect()]