"""Tests for the in-memory request/response transport."""

import pytest

from swimsim.core.exceptions import ProtocolInvariantError, TransportError
from swimsim.core.protocol import SwimProtocol
from swimsim.core.transport import InMemoryTransport, RequestTransport
from swimsim.datastructures.membership_types import GossipItem, MemberState
from swimsim.datastructures.messages import (
    AckMessage,
    ProbeMessage,
    RequestHandle,
    RequestOutcome,
)


def make_probe(source: int = 1, destination: int = 2, round_number: int = 0) -> ProbeMessage:
    return ProbeMessage(
        source=source,
        destination=destination,
        incarnation=1,
        state=MemberState.ALIVE,
        gossip=(GossipItem(3, 1, MemberState.SUSPECT),),
        round=round_number,
    )


def make_ack(source: int = 2, destination: int = 1) -> AckMessage:
    return AckMessage(source=source, destination=destination, incarnation=1, gossip=())


@pytest.fixture
def transport() -> InMemoryTransport:
    return InMemoryTransport()


class TestSendRequest:
    def test_handles_are_sequential(self, transport: InMemoryTransport):
        first = transport.send_request(make_probe(round_number=0))
        second = transport.send_request(make_probe(round_number=1))

        assert (first.request_id, second.request_id) == (1, 2)
        assert [r.handle for r in transport.in_flight()] == [first, second]

    def test_identical_in_flight_payload_reuses_handle(
        self, transport: InMemoryTransport
    ):
        first = transport.send_request(make_probe())
        again = transport.send_request(make_probe())

        assert again == first
        assert len(transport.records) == 1

    def test_identical_payload_after_answer_gets_new_handle(
        self, transport: InMemoryTransport
    ):
        first = transport.send_request(make_probe())
        transport.send_reply(first, make_ack())

        second = transport.send_request(make_probe())

        assert second != first
        assert transport.in_flight()[0].handle == second


class TestReplies:
    def test_reply_answers_request(self, transport: InMemoryTransport):
        handle = transport.send_request(make_probe())
        assert transport.is_unanswered(handle)

        transport.send_reply(handle, make_ack())

        record = transport.record(handle)
        assert record.outcome == RequestOutcome.ANSWERED
        assert record.response == make_ack()
        assert not transport.is_unanswered(handle)
        assert transport.in_flight() == []
        assert transport.answered() == [record]

    def test_second_reply_rejected(self, transport: InMemoryTransport):
        handle = transport.send_request(make_probe())
        transport.send_reply(handle, make_ack())

        with pytest.raises(ProtocolInvariantError, match="already answered"):
            transport.send_reply(handle, make_ack())
        with pytest.raises(ProtocolInvariantError, match="already answered"):
            transport.mark_failed(handle)

    def test_failed_request_cannot_be_answered(self, transport: InMemoryTransport):
        handle = transport.send_request(make_probe(destination=3))
        transport.mark_failed(handle)

        assert transport.record(handle).outcome == RequestOutcome.FAILED
        assert transport.answered() == []
        with pytest.raises(ProtocolInvariantError, match="already failed"):
            transport.send_reply(handle, make_ack(source=3))
        with pytest.raises(ProtocolInvariantError, match="already failed"):
            transport.mark_failed(handle)

    def test_unknown_handle(self, transport: InMemoryTransport):
        unknown = RequestHandle(request_id=99)
        with pytest.raises(TransportError, match="Unknown request 99"):
            transport.record(unknown)
        with pytest.raises(TransportError):
            transport.send_reply(unknown, make_ack())
        with pytest.raises(TransportError):
            transport.is_unanswered(unknown)


class TestEngineTransport:
    def test_in_memory_transport_satisfies_protocol(self):
        assert isinstance(InMemoryTransport(), RequestTransport)

    def test_engine_uses_supplied_transport(self, three_member_config):
        transport = InMemoryTransport()
        protocol = SwimProtocol(three_member_config, dead_members=[3], transport=transport)

        handle = protocol.probe(1, 2)

        assert transport.record(handle).request.source == 1

    def test_ack_without_response_is_rejected(self, protocol: SwimProtocol):
        handle = protocol.probe(1, 2)

        with pytest.raises(ProtocolInvariantError):
            protocol.receive_ack(handle)
        assert protocol.rounds[1] == 0
