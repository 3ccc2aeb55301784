"""
Request/response transport used by the protocol engine.

The engine only needs a reliable, at-most-once request/response primitive.
`RequestTransport` names that contract; `InMemoryTransport` realizes it by
keeping every request record in a table, which is also what the driver
inspects to find requests that can be answered or failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from ..datastructures.messages import (
    AckMessage,
    ProbeMessage,
    RequestHandle,
    RequestOutcome,
    RequestRecord,
)
from ..datastructures.type_aliases import RequestId
from .exceptions import ProtocolInvariantError, TransportError


@runtime_checkable
class RequestTransport(Protocol):
    """Reliable request/response channel as seen by the protocol engine."""

    def send_request(self, payload: ProbeMessage) -> RequestHandle: ...
    def send_reply(self, handle: RequestHandle, payload: AckMessage) -> None: ...
    def mark_failed(self, handle: RequestHandle) -> None: ...
    def is_unanswered(self, handle: RequestHandle) -> bool: ...
    def record(self, handle: RequestHandle) -> RequestRecord: ...
    def in_flight(self) -> list[RequestRecord]: ...
    def answered(self) -> list[RequestRecord]: ...


@dataclass(slots=True)
class InMemoryTransport:
    """
    Reliable in-process transport with no loss or duplication.

    Sending a payload identical to one already in flight returns the
    existing handle. Answering a request twice, or answering a failed
    one, is a protocol invariant violation.
    """

    records: dict[RequestId, RequestRecord] = field(default_factory=dict)
    _next_id: RequestId = 1

    def send_request(self, payload: ProbeMessage) -> RequestHandle:
        for record in self.records.values():
            if record.is_unanswered and record.request == payload:
                return record.handle
        handle = RequestHandle(request_id=self._next_id)
        self._next_id += 1
        self.records[handle.request_id] = RequestRecord(handle=handle, request=payload)
        return handle

    def record(self, handle: RequestHandle) -> RequestRecord:
        record = self.records.get(handle.request_id)
        if record is None:
            raise TransportError(f"Unknown request {handle.request_id}")
        return record

    def send_reply(self, handle: RequestHandle, payload: AckMessage) -> None:
        record = self.record(handle)
        if not record.is_unanswered:
            raise ProtocolInvariantError(
                f"Request {handle.request_id} already {record.outcome.value}"
            )
        self.records[handle.request_id] = record.answered(payload)

    def mark_failed(self, handle: RequestHandle) -> None:
        record = self.record(handle)
        if not record.is_unanswered:
            raise ProtocolInvariantError(
                f"Request {handle.request_id} already {record.outcome.value}"
            )
        self.records[handle.request_id] = record.failed()

    def is_unanswered(self, handle: RequestHandle) -> bool:
        return self.record(handle).is_unanswered

    def in_flight(self) -> list[RequestRecord]:
        return [
            record
            for _, record in sorted(self.records.items())
            if record.outcome == RequestOutcome.IN_FLIGHT
        ]

    def answered(self) -> list[RequestRecord]:
        return [
            record
            for _, record in sorted(self.records.items())
            if record.outcome == RequestOutcome.ANSWERED
        ]
