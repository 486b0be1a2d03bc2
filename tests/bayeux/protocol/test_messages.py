"""Tests for message envelopes, advice and error strings."""

import pytest

from fayekit.bayeux.protocol.errors import (
    CLIENT_UNKNOWN,
    ProtocolError,
    ProtocolErrorKind,
    parse_error_string,
)
from fayekit.bayeux.protocol.messages import (
    Advice,
    Message,
    Reconnect,
    handshake_message,
    subscribe_message,
)
from fayekit.bayeux.transport.base import MalformedResponseError, TransportError


class TestMessage:
    """Tests for Message wire conversion."""

    def test_to_dict_uses_wire_names_and_skips_unset(self):
        message = Message(channel="/meta/connect", client_id="abc", id="7", connection_type="long-polling")
        assert message.to_dict() == {
            "channel": "/meta/connect",
            "clientId": "abc",
            "id": "7",
            "connectionType": "long-polling",
        }

    def test_handshake_message_fields(self):
        wire = handshake_message(["long-polling"]).to_dict()
        assert wire["channel"] == "/meta/handshake"
        assert wire["version"] == "1.0"
        assert wire["minimumVersion"] == "1.0"
        assert wire["supportedConnectionTypes"] == ["long-polling"]
        assert "id" in wire

    def test_message_ids_are_unique(self):
        ids = {subscribe_message("abc", "/foo").id for _ in range(50)}
        assert len(ids) == 50

    def test_from_dict(self):
        message = Message.from_dict(
            {
                "channel": "/meta/handshake",
                "clientId": "abc",
                "successful": True,
                "id": 3,
                "advice": {"reconnect": "retry"},
                "authSuccessful": True,
            }
        )
        assert message.client_id == "abc"
        assert message.successful is True
        assert message.id == "3"
        assert message.is_meta
        assert message.is_reply
        assert message.extra == {"authSuccessful": True}
        assert message.to_dict()["authSuccessful"] is True

    def test_delivery_is_not_reply(self):
        message = Message.from_dict({"channel": "/foo", "data": {"x": 1}})
        assert not message.is_reply
        assert not message.is_meta
        assert message.data == {"x": 1}

    def test_missing_channel_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            Message.from_dict({"data": 1})
        assert issubclass(MalformedResponseError, TransportError)


class TestAdvice:
    """Tests for advice merging."""

    def test_defaults(self):
        advice = Advice()
        assert advice.reconnect == Reconnect.RETRY
        assert advice.interval == 0.0
        assert advice.timeout == 60.0

    def test_merge_converts_milliseconds(self):
        advice = Advice().merged({"reconnect": "handshake", "interval": 1500, "timeout": 45000})
        assert advice == Advice(Reconnect.HANDSHAKE, 1.5, 45.0)

    def test_absent_fields_keep_prior_values(self):
        advice = Advice(Reconnect.HANDSHAKE, 2.0, 30.0).merged({"interval": 500})
        assert advice == Advice(Reconnect.HANDSHAKE, 0.5, 30.0)

    def test_invalid_values_ignored(self):
        advice = Advice().merged({"reconnect": "bogus", "interval": -1, "timeout": "x"})
        assert advice == Advice()

    def test_to_dict_round_numbers(self):
        assert Advice(Reconnect.NONE, 1.0, 2.0).to_dict() == {
            "reconnect": "none",
            "interval": 1000,
            "timeout": 2000,
        }


class TestErrorStrings:
    """Tests for Bayeux error string parsing."""

    def test_full_format(self):
        assert parse_error_string("402:xj3sjdsjdsjad:Unknown Client ID") == (
            402,
            ["xj3sjdsjdsjad"],
            "Unknown Client ID",
        )

    def test_empty_args(self):
        assert parse_error_string("401::Unknown client") == (CLIENT_UNKNOWN, [], "Unknown client")

    def test_free_text(self):
        assert parse_error_string("something broke") == (None, [], "something broke")

    def test_none(self):
        assert parse_error_string(None) == (None, [], "")

    def test_protocol_error_from_reply(self):
        reply = Message(channel="/meta/subscribe", successful=False, error="403:/secret:Forbidden")
        error = ProtocolError.from_reply(ProtocolErrorKind.SUBSCRIBE_REJECTED, reply)
        assert error.kind == ProtocolErrorKind.SUBSCRIBE_REJECTED
        assert error.code == 403
        assert error.error_args == ["/secret"]
        assert "Forbidden" in str(error)

    def test_protocol_error_without_error_text(self):
        reply = Message(channel="/meta/handshake", successful=False)
        error = ProtocolError.from_reply(ProtocolErrorKind.HANDSHAKE_REJECTED, reply)
        assert error.code is None
        assert "/meta/handshake" in error.message
