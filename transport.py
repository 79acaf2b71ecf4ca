#!/usr/bin/env python3

import logging
import select
import socket
import sys
from abc import ABC, abstractmethod
from typing import NamedTuple, Optional

RECV_BUFSIZE = 4096


class SetupError(Exception):
    """Target resolution or socket setup failed; the run cannot start."""


class Datagram(NamedTuple):
    data: bytes
    ttl: Optional[int] = None # Received hop limit, if the platform reports it
    tos: Optional[int] = None # Received TOS / traffic class, if the platform reports it


class Transport(ABC):
    """Connected datagram channel to a single target."""

    address = None # Numeric address string of the target

    @abstractmethod
    def send(self, data: bytes) -> None:
        """Send one datagram. OSError propagates to the caller."""
        raise NotImplementedError

    @abstractmethod
    def recv(self) -> Datagram:
        """Receive one datagram. OSError propagates to the caller."""
        raise NotImplementedError

    @abstractmethod
    def wait_readable(self, timeout: float) -> bool:
        """Block at most `timeout` seconds; True if a datagram (or error) is pending."""
        raise NotImplementedError

    def close(self) -> None:
        pass


def _cmsg_int(data):
    # IP_TOS arrives as a single byte on Linux, the rest as a native int
    if len(data) == 1:
        return data[0]
    return int.from_bytes(data[:4], sys.byteorder)


class UdpTransport(Transport):
    """Transport over a connected UDP socket, reading TTL/TOS ancillary data where supported."""

    def __init__(self, sock, address):
        self.sock = sock
        self.address = address
        self.ancillary = self._enable_ancillary()

    def _enable_ancillary(self):
        if not hasattr(self.sock, "recvmsg") or not hasattr(socket, "CMSG_SPACE"):
            logging.debug("recvmsg() unavailable; received TTL/TOS will not be reported.")
            return False

        if self.sock.family == socket.AF_INET6:
            opts = [("IPV6_RECVHOPLIMIT", socket.IPPROTO_IPV6),
                    ("IPV6_RECVTCLASS", socket.IPPROTO_IPV6)]
        else:
            opts = [("IP_RECVTTL", socket.IPPROTO_IP),
                    ("IP_RECVTOS", socket.IPPROTO_IP)]

        enabled = False
        for name, level in opts:
            opt = getattr(socket, name, None)
            if opt is None:
                logging.debug(f"{name} not supported on this platform.")
                continue
            try:
                self.sock.setsockopt(level, opt, 1)
                enabled = True
            except OSError as e:
                logging.debug(f"setsockopt({name}) failed: {e}")
        return enabled

    def _parse_ancillary(self, ancdata):
        ttl = tos = None
        for level, ctype, data in ancdata:
            if level == socket.IPPROTO_IP:
                if ctype == getattr(socket, "IP_TTL", None):
                    ttl = _cmsg_int(data)
                elif ctype == getattr(socket, "IP_TOS", None):
                    tos = _cmsg_int(data)
            elif level == socket.IPPROTO_IPV6:
                if ctype == getattr(socket, "IPV6_HOPLIMIT", None):
                    ttl = _cmsg_int(data)
                elif ctype == getattr(socket, "IPV6_TCLASS", None):
                    tos = _cmsg_int(data)
        return ttl, tos

    def send(self, data):
        self.sock.send(data)

    def recv(self):
        if not self.ancillary:
            return Datagram(self.sock.recv(RECV_BUFSIZE))
        data, ancdata, _flags, _addr = self.sock.recvmsg(RECV_BUFSIZE, socket.CMSG_SPACE(4) * 2)
        ttl, tos = self._parse_ancillary(ancdata)
        logging.debug(f"Ancillary data: ttl={ttl} tos={tos}")
        return Datagram(data, ttl, tos)

    def wait_readable(self, timeout):
        readable, _, _ = select.select([self.sock], [], [], max(timeout, 0.0))
        return bool(readable)

    def close(self):
        self.sock.close()


def _set_ip_options(sock, family, ttl, tos):
    if family == socket.AF_INET6:
        ttl_opt = (socket.IPPROTO_IPV6, socket.IPV6_UNICAST_HOPS)
        tos_opt = (socket.IPPROTO_IPV6, getattr(socket, "IPV6_TCLASS", None))
    else:
        ttl_opt = (socket.IPPROTO_IP, socket.IP_TTL)
        tos_opt = (socket.IPPROTO_IP, socket.IP_TOS)

    if ttl is not None:
        sock.setsockopt(ttl_opt[0], ttl_opt[1], ttl)
        logging.info(f"Outgoing TTL set to {ttl}")
    if tos is not None:
        if tos_opt[1] is None:
            raise SetupError("Setting traffic class is not supported on this platform")
        sock.setsockopt(tos_opt[0], tos_opt[1], tos)
        logging.info(f"Outgoing TOS set to 0x{tos:02x}")


def open_transport(cfg):
    """
    Resolves cfg.target and returns a UdpTransport connected to it.

    Args:
        cfg: ProbeConfig with target, port, family, ttl and tos.

    Raises:
        SetupError: on resolution, socket or connect failure.
    """
    logging.debug(f"open_transport({cfg.target}, port {cfg.port})")
    try:
        addrs = socket.getaddrinfo(cfg.target, cfg.port, cfg.family, socket.SOCK_DGRAM,
                                   0, socket.AI_ADDRCONFIG | socket.AI_NUMERICSERV)
    except socket.gaierror as e:
        raise SetupError(f"unknown host {cfg.target}: {e}") from e
    if not addrs:
        raise SetupError(f"unknown host {cfg.target}")

    family, socktype, proto, _canonname, sockaddr = addrs[0]
    try:
        address, _ = socket.getnameinfo(sockaddr, socket.NI_NUMERICHOST | socket.NI_NUMERICSERV)
    except socket.gaierror as e:
        raise SetupError(f"getnameinfo(): {e}") from e
    logging.info(f"target={cfg.target} targetip={address}")

    try:
        sock = socket.socket(family, socktype, proto)
    except OSError as e:
        raise SetupError(f"socket({family}, {socktype}, {proto}): {e}") from e

    try:
        _set_ip_options(sock, family, cfg.ttl, cfg.tos)
        sock.connect(sockaddr)
    except OSError as e:
        sock.close()
        raise SetupError(f"socket setup for {address}: {e}") from e
    except SetupError:
        sock.close()
        raise

    return UdpTransport(sock, address)
