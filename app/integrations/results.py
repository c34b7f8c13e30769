"""
Tagged results returned by platform adapters.

Adapters never raise for the failure modes a platform can be expected to
produce; they return ``Err`` with one of the ``AdapterErrorKind`` values so the
orchestrator can apply one retry policy to every platform.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class AdapterErrorKind(str, Enum):
    AUTH_FAILURE = "auth_failure"
    RATE_LIMITED = "rate_limited"
    UNREACHABLE = "unreachable"
    MALFORMED_RESPONSE = "malformed_response"

    @property
    def transient(self) -> bool:
        return self in (AdapterErrorKind.RATE_LIMITED, AdapterErrorKind.UNREACHABLE)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: AdapterErrorKind
    message: str = ""

    @property
    def ok(self) -> bool:
        return False


AdapterResult = Union[Ok[T], Err]
