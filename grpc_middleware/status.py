"""Call status codes and conversion of exceptions into statuses."""

from __future__ import annotations

import asyncio
import concurrent.futures
import enum
from dataclasses import dataclass
from typing import Optional

_NAMES = {
    0: "OK",
    1: "Canceled",
    2: "Unknown",
    3: "InvalidArgument",
    4: "DeadlineExceeded",
    5: "NotFound",
    6: "AlreadyExists",
    7: "PermissionDenied",
    8: "ResourceExhausted",
    9: "FailedPrecondition",
    10: "Aborted",
    11: "OutOfRange",
    12: "Unimplemented",
    13: "Internal",
    14: "Unavailable",
    15: "DataLoss",
    16: "Unauthenticated",
}


class Code(enum.IntEnum):
    """Status codes of a call."""

    OK = 0
    CANCELED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    def __str__(self) -> str:
        return _NAMES[self.value]


@dataclass(frozen=True)
class Status:
    """A status code with its message."""

    code: Code
    message: str = ""

    def err(self) -> Optional["StatusError"]:
        """Return the matching exception, or None for OK."""
        if self.code is Code.OK:
            return None
        return StatusError(self.code, self.message)


class StatusError(Exception):
    """An error that carries a call status."""

    def __init__(self, code: Code, message: str = "") -> None:
        self.status = Status(Code(code), message)
        super().__init__(f"rpc error: code = {self.status.code} desc = {message}")

    @property
    def code(self) -> Code:
        return self.status.code


_CANCELLED = (asyncio.CancelledError, concurrent.futures.CancelledError)
_TIMEOUTS = (TimeoutError, asyncio.TimeoutError, concurrent.futures.TimeoutError)


def _find_status_error(err: BaseException) -> Optional[StatusError]:
    seen = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        if isinstance(current, StatusError):
            return current
        seen.add(id(current))
        current = current.__cause__
    return None


def from_error(err: Optional[BaseException]) -> Status:
    """Return the status for ``err``.

    Status errors keep their status, cancellation and timeouts become
    CANCELED and DEADLINE_EXCEEDED, everything else is UNKNOWN.
    """
    if err is None:
        return Status(Code.OK)
    found = _find_status_error(err)
    if found is not None:
        if found is err:
            return found.status
        return Status(found.status.code, f"{err}: {found.status.message}")
    if isinstance(err, _CANCELLED):
        return Status(Code.CANCELED, str(err))
    if isinstance(err, _TIMEOUTS):
        return Status(Code.DEADLINE_EXCEEDED, str(err))
    return Status(Code.UNKNOWN, str(err))


def code_of(err: Optional[BaseException]) -> Code:
    """Return the code of ``err``: OK for None, UNKNOWN for non-status errors."""
    if err is None:
        return Code.OK
    found = _find_status_error(err)
    if found is None:
        return Code.UNKNOWN
    return found.status.code