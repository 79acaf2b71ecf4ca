#!/usr/bin/env python3

import logging
import config

try:
    from scapy.packet import Packet
    from scapy.fields import ByteEnumField, ByteField, IntField, ShortField, XByteField
except ImportError:
    logging.error("Scapy is not installed or import failed. Please run: pip install scapy")
    raise


class MalformedPacketError(ValueError):
    """Raised when a datagram cannot be a GTP echo message."""


class GtpEcho(Packet):
    """GTPv1-C Echo Request / Echo Reply header with sequence number."""
    name = "GTPEcho"
    fields_desc = [
        XByteField("flags", config.GTP_FLAGS),
        ByteEnumField("msg_type", config.GTP_ECHO_REQUEST,
                      {config.GTP_ECHO_REQUEST: "echo_request",
                       config.GTP_ECHO_REPLY: "echo_reply"}),
        ShortField("length", config.GTP_ECHO_PAYLOAD_LEN),
        IntField("teid", config.DEFAULT_TEID),
        ShortField("seq", 0),
        ByteField("npdu", 0),
        ByteField("next_ext", 0),
    ]

    def is_reply(self):
        return self.msg_type == config.GTP_ECHO_REPLY


def build_echo_request(teid, seq):
    """Returns the 12 wire bytes of an echo request for `seq` (taken mod 2^16)."""
    pkt = GtpEcho(flags=config.GTP_FLAGS,
                  msg_type=config.GTP_ECHO_REQUEST,
                  length=config.GTP_ECHO_PAYLOAD_LEN,
                  teid=teid,
                  seq=seq % config.SEQ_MODULO)
    return bytes(pkt)


def parse_echo(data):
    """
    Parses a received datagram into a GtpEcho.

    Args:
        data: Raw datagram bytes.

    Returns:
        GtpEcho with the decoded header fields.

    Raises:
        MalformedPacketError: if the datagram is not exactly one echo header long.
    """
    if len(data) != config.GTP_ECHO_SIZE:
        raise MalformedPacketError(
            f"Expected {config.GTP_ECHO_SIZE} byte GTP echo, got {len(data)} bytes")
    return GtpEcho(bytes(data))
