import asyncio

import pytest

from grpc_middleware.status import Code, Status, StatusError, code_of, from_error


def test_none_is_ok():
    assert from_error(None).code is Code.OK
    assert code_of(None) is Code.OK


def test_status_error_round_trip():
    err = StatusError(Code.FAILED_PRECONDITION, "Userspace error")
    status = from_error(err)
    assert status == Status(Code.FAILED_PRECONDITION, "Userspace error")
    assert code_of(err) is Code.FAILED_PRECONDITION
    assert status.err().status == status


def test_ok_status_has_no_error():
    assert Status(Code.OK).err() is None


def test_cancelled_becomes_canceled():
    assert from_error(asyncio.CancelledError()).code is Code.CANCELED


def test_timeout_becomes_deadline_exceeded():
    assert from_error(TimeoutError("late")).code is Code.DEADLINE_EXCEEDED


def test_other_errors_are_unknown():
    status = from_error(ValueError("boom"))
    assert status.code is Code.UNKNOWN
    assert status.message == "boom"
    assert code_of(ValueError("boom")) is Code.UNKNOWN


def test_wrapped_status_error_is_found():
    inner = StatusError(Code.NOT_FOUND, "missing")
    try:
        try:
            raise inner
        except StatusError as exc:
            raise RuntimeError("outer") from exc
    except RuntimeError as outer:
        assert from_error(outer).code is Code.NOT_FOUND
        assert code_of(outer) is Code.NOT_FOUND


@pytest.mark.parametrize(
    "code,name",
    [
        (Code.OK, "OK"),
        (Code.CANCELED, "Canceled"),
        (Code.FAILED_PRECONDITION, "FailedPrecondition"),
        (Code.OUT_OF_RANGE, "OutOfRange"),
        (Code.RESOURCE_EXHAUSTED, "ResourceExhausted"),
        (Code.ABORTED, "Aborted"),
    ],
)
def test_code_names(code, name):
    assert str(code) == name


def test_all_non_ok_codes_round_trip_with_distinct_names():
    names = {
        str(code_of(Status(c, "m").err())) for c in Code if c is not Code.OK
    }
    assert len(names) == len(Code) - 1
    assert "OK" not in names


def test_status_error_rejects_invalid_code():
    with pytest.raises(ValueError):
        StatusError(99, "bad")