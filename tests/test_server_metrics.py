import asyncio
from types import SimpleNamespace

import pytest

from grpc_middleware.prometheus.options import (
    GrpcType,
    MethodInfo,
    with_histogram_subsystem,
    with_server_counter_options,
    with_server_handling_time_histogram,
    with_subsystem,
)
from grpc_middleware.prometheus.reporter import CallMeta, Reportable
from grpc_middleware.prometheus.server_metrics import ServerMetrics
from grpc_middleware.status import Code, StatusError
from grpc_middleware.wrappers import background

SERVICE = "testing.testpb.v1.TestService"
LIST_RESPONSE_COUNT = 100

SERVICE_INFO = {
    SERVICE: [
        MethodInfo("PingEmpty"),
        MethodInfo("Ping"),
        MethodInfo("PingError"),
        MethodInfo("PingList", is_server_stream=True),
        MethodInfo("PingStream", is_client_stream=True, is_server_stream=True),
    ]
}


@pytest.fixture
def metrics():
    m = ServerMetrics(with_server_handling_time_histogram())
    m.initialize_metrics(SERVICE_INFO)
    return m


def _find(metrics, fq_name, *label_values):
    return [
        m
        for m in metrics.collect()
        if m.desc.fq_name == fq_name and set(label_values) <= set(m.labels.values())
    ]


def test_with_subsystem():
    metrics = ServerMetrics(
        with_server_counter_options(with_subsystem("subsystem1")),
        with_server_handling_time_histogram(with_histogram_subsystem("subsystem1")),
    )
    counter = metrics.server_started_counter.with_label_values("unary", SERVICE, "dummy")
    histogram = metrics.server_handled_histogram.with_label_values("unary", SERVICE, "dummy")
    assert counter.desc.fq_name.split("_")[0] == "subsystem1"
    assert histogram.desc.fq_name.split("_")[0] == "subsystem1"


@pytest.mark.parametrize(
    "fq_name, labels",
    [
        ("grpc_server_started_total", (SERVICE, "PingEmpty", "unary")),
        ("grpc_server_started_total", (SERVICE, "PingList", "server_stream")),
        ("grpc_server_msg_received_total", (SERVICE, "PingList", "server_stream")),
        ("grpc_server_msg_sent_total", (SERVICE, "PingEmpty", "unary")),
        ("grpc_server_handling_seconds", (SERVICE, "PingEmpty", "unary")),
        ("grpc_server_handling_seconds", (SERVICE, "PingList", "server_stream")),
        ("grpc_server_handled_total", (SERVICE, "PingList", "server_stream", "OutOfRange")),
        ("grpc_server_handled_total", (SERVICE, "PingList", "server_stream", "Aborted")),
        ("grpc_server_handled_total", (SERVICE, "PingEmpty", "unary", "FailedPrecondition")),
        ("grpc_server_handled_total", (SERVICE, "PingEmpty", "unary", "ResourceExhausted")),
    ],
)
def test_register_presets_stuff(metrics, fq_name, labels):
    found = _find(metrics, fq_name, *labels)
    assert len(found) == 1


def test_presets_are_zero(metrics):
    counter = metrics.server_started_counter.with_label_values("bidi_stream", SERVICE, "PingStream")
    histogram = metrics.server_handled_histogram.with_label_values("unary", SERVICE, "PingEmpty")
    assert counter.value == 0
    assert histogram.sample_count == 0
    assert histogram.sample_sum == 0


def test_handled_counter_preset_for_every_code(metrics):
    found = _find(metrics, "grpc_server_handled_total", "PingEmpty")
    assert len(found) == len(Code) == 17


def test_initialize_accepts_service_info_provider():
    metrics = ServerMetrics()
    provider = SimpleNamespace(
        get_service_info=lambda: {SERVICE: SimpleNamespace(methods=[MethodInfo("PingEmpty")])}
    )
    metrics.initialize_metrics(provider)
    assert len(_find(metrics, "grpc_server_started_total", "PingEmpty", "unary")) == 1


def test_unary_increments_metrics(metrics):
    reportable = Reportable(server_metrics=metrics)
    reporter, _ = reportable.server_reporter(background(), CallMeta(GrpcType.UNARY, SERVICE, "PingEmpty"))
    reporter.post_call(None, 0.01)
    assert metrics.server_started_counter.with_label_values("unary", SERVICE, "PingEmpty").value == 1
    assert metrics.server_handled_counter.with_label_values("unary", SERVICE, "PingEmpty", "OK").value == 1
    assert metrics.server_handled_histogram.with_label_values("unary", SERVICE, "PingEmpty").sample_count == 1

    reporter, _ = reportable.server_reporter(background(), CallMeta(GrpcType.UNARY, SERVICE, "PingError"))
    reporter.post_call(StatusError(Code.FAILED_PRECONDITION, "Userspace error"), 0.01)
    assert metrics.server_started_counter.with_label_values("unary", SERVICE, "PingError").value == 1
    assert (
        metrics.server_handled_counter.with_label_values(
            "unary", SERVICE, "PingError", "FailedPrecondition"
        ).value
        == 1
    )
    assert metrics.server_handled_histogram.with_label_values("unary", SERVICE, "PingError").sample_count == 1


def test_streaming_increments_metrics(metrics):
    reportable = Reportable(server_metrics=metrics)
    meta = CallMeta(GrpcType.SERVER_STREAM, SERVICE, "PingList")
    labels = ("server_stream", SERVICE, "PingList")

    reporter, _ = reportable.server_reporter(background(), meta)
    reporter.post_msg_receive(object(), None, 0.001)
    for _ in range(LIST_RESPONSE_COUNT):
        reporter.post_msg_send(object(), None, 0.001)
    reporter.post_call(None, 0.3)

    assert metrics.server_started_counter.with_label_values(*labels).value == 1
    assert metrics.server_handled_counter.with_label_values(*labels, "OK").value == 1
    assert metrics.server_stream_msg_sent.with_label_values(*labels).value == LIST_RESPONSE_COUNT
    assert metrics.server_stream_msg_received.with_label_values(*labels).value == 1
    assert metrics.server_handled_histogram.with_label_values(*labels).sample_count == 1

    reporter, _ = reportable.server_reporter(background(), meta)
    reporter.post_call(StatusError(Code.FAILED_PRECONDITION, "foobar"), 0.1)
    assert metrics.server_started_counter.with_label_values(*labels).value == 2
    assert metrics.server_handled_counter.with_label_values(*labels, "FailedPrecondition").value == 1
    assert metrics.server_handled_histogram.with_label_values(*labels).sample_count == 2


def test_context_cancelled_treated_as_status(metrics):
    reporter, _ = Reportable(server_metrics=metrics).server_reporter(
        background(), CallMeta(GrpcType.BIDI_STREAM, SERVICE, "PingStream")
    )
    reporter.post_call(asyncio.CancelledError(), 0.05)
    counter = metrics.server_handled_counter.with_label_values("bidi_stream", SERVICE, "PingStream", "Canceled")
    assert counter.value == 1


def test_describe_lists_histogram_when_enabled():
    assert [d.fq_name for d in ServerMetrics().describe()] == [
        "grpc_server_started_total",
        "grpc_server_handled_total",
        "grpc_server_msg_received_total",
        "grpc_server_msg_sent_total",
    ]
    names = [d.fq_name for d in ServerMetrics(with_server_handling_time_histogram()).describe()]
    assert names[-1] == "grpc_server_handling_seconds"
    assert len(names) == 5