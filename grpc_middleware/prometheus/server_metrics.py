"""Counters and histograms describing the calls handled by a server."""

from __future__ import annotations

from typing import Any, Callable, Iterator, List, Optional, Union

from grpc_middleware.prometheus.metrics import CounterVec, Desc, HistogramVec
from grpc_middleware.prometheus.options import (
    MethodInfo,
    _ServerMetricsConfig,
    type_from_method_info,
)
from grpc_middleware.status import Code

_METHOD_LABELS = ("grpc_type", "grpc_service", "grpc_method")
_HANDLED_LABELS = _METHOD_LABELS + ("grpc_code",)

ServerMetricsOption = Callable[[_ServerMetricsConfig], None]


class ServerMetrics:
    """The metric collection of a server."""

    def __init__(self, *options: ServerMetricsOption) -> None:
        config = _ServerMetricsConfig.from_options(options)
        self.server_started_counter = CounterVec(
            config.counter(
                "grpc_server_started_total",
                "Total number of RPCs started on the server.",
            ),
            _METHOD_LABELS,
        )
        self.server_handled_counter = CounterVec(
            config.counter(
                "grpc_server_handled_total",
                "Total number of RPCs completed on the server, regardless of success or failure.",
            ),
            _HANDLED_LABELS,
        )
        self.server_stream_msg_received = CounterVec(
            config.counter(
                "grpc_server_msg_received_total",
                "Total number of RPC stream messages received on the server.",
            ),
            _METHOD_LABELS,
        )
        self.server_stream_msg_sent = CounterVec(
            config.counter(
                "grpc_server_msg_sent_total",
                "Total number of gRPC stream messages sent by the server.",
            ),
            _METHOD_LABELS,
        )
        self.server_handled_histogram: Optional[HistogramVec] = config.server_handled_histogram

    def _vectors(self) -> Iterator[Union[CounterVec, HistogramVec]]:
        yield self.server_started_counter
        yield self.server_handled_counter
        yield self.server_stream_msg_received
        yield self.server_stream_msg_sent
        if self.server_handled_histogram is not None:
            yield self.server_handled_histogram

    def describe(self) -> List[Desc]:
        """Return the descriptions of every metric this collection can hold."""
        return [desc for vec in self._vectors() for desc in vec.describe()]

    def collect(self) -> list:
        """Return every metric collected so far."""
        return [metric for vec in self._vectors() for metric in vec.collect()]

    def initialize_metrics(self, service_info: Any) -> None:
        """Create every metric, at zero, for each registered method.

        ``service_info`` maps service names to their methods: either an iterable
        of MethodInfo or an object with a ``methods`` attribute. An object with a
        ``get_service_info()`` method is asked for that mapping first.
        """
        getter = getattr(service_info, "get_service_info", None)
        if callable(getter):
            service_info = getter()
        for service_name, info in service_info.items():
            for method_info in getattr(info, "methods", info):
                self._pre_register_method(service_name, method_info)

    def _pre_register_method(self, service_name: str, method_info: MethodInfo) -> None:
        method_name = method_info.name
        method_type = str(type_from_method_info(method_info))
        self.server_started_counter.with_label_values(method_type, service_name, method_name)
        self.server_stream_msg_received.with_label_values(method_type, service_name, method_name)
        self.server_stream_msg_sent.with_label_values(method_type, service_name, method_name)
        if self.server_handled_histogram is not None:
            self.server_handled_histogram.with_label_values(method_type, service_name, method_name)
        for code in Code:
            self.server_handled_counter.with_label_values(
                method_type, service_name, method_name, str(code)
            )