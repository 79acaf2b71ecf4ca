# tests/test_gtp_packet.py
import pytest

from fakes import echo_reply
from gtp_packet import MalformedPacketError, build_echo_request, parse_echo


def test_echo_request_wire_layout():
    """Echo request is 12 bytes: flags, type, length, teid, seq, npdu, next."""
    assert build_echo_request(7, 1) == bytes.fromhex("32 01 0004 00000007 0001 00 00")


def test_echo_request_large_teid():
    assert build_echo_request(0xDEADBEEF, 0)[4:8] == bytes.fromhex("deadbeef")


def test_echo_request_sequence_wraps_at_16_bits():
    assert build_echo_request(0, 65537)[8:10] == b"\x00\x01"


def test_parse_echo_reply():
    msg = parse_echo(echo_reply(513, teid=42))
    assert msg.is_reply()
    assert msg.msg_type == 2
    assert msg.seq == 513
    assert msg.teid == 42
    assert msg.length == 4


def test_parse_echo_request_is_not_a_reply():
    assert not parse_echo(build_echo_request(0, 3)).is_reply()


@pytest.mark.parametrize("data", [b"", b"\x32\x02\x00", echo_reply(1) + b"\x00"])
def test_parse_rejects_wrong_length(data):
    """Anything but exactly 12 bytes is rejected before decoding."""
    with pytest.raises(MalformedPacketError):
        parse_echo(data)
    with pytest.raises(ValueError):
        parse_echo(data)
