#!/usr/bin/env python3

import enum
import errno
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

import config
from gtp_packet import MalformedPacketError, build_echo_request, parse_echo
from reporter import Reporter
from rtt_tracker import ReplyKind, RttSummary, RttTracker

# Receive errors that mean "nobody is listening there", not a broken socket
SOFT_RECV_ERRNOS = {errno.ECONNREFUSED, errno.EHOSTUNREACH, errno.ENETUNREACH}


class ProbeError(Exception):
    """Unrecoverable transport error; the run was aborted."""


class ProbeState(enum.Enum):
    RUNNING = "running"
    DRAINING = "draining" # Count reached, waiting for stragglers
    STOPPED = "stopped"


@dataclass
class RunState:
    wait_timeout: float
    state: ProbeState = ProbeState.RUNNING
    sent: int = 0
    received: int = 0
    refused: int = 0
    next_seq: int = 0
    start_time: float = 0.0
    last_send_time: Optional[float] = None # None until the first send
    last_recv_time: float = 0.0


@dataclass(frozen=True)
class ReplyEvent:
    size: int
    address: str
    seq: int
    teid: int
    latency: Optional[float] # None when the send time is no longer known
    ttl: Optional[int] = None
    tos: Optional[int] = None
    duplicate: bool = False
    reordered: bool = False


@dataclass(frozen=True)
class ProbeResult:
    target: str
    address: str
    sent: int
    received: int
    duplicates: int
    reorders: int
    refused: int
    elapsed: float
    rtt: Optional[RttSummary]

    @property
    def loss_percent(self):
        if not self.sent:
            return 0.0
        return 100.0 * (self.sent - self.received) / self.sent

    @property
    def success(self):
        return self.received > 0


class GtpPinger:
    """
    Sends GTP echo requests at a fixed interval and times the replies.

    The loop never blocks longer than half the time left until the next
    decision point, so `stop_event` is noticed promptly.
    """

    def __init__(self, cfg, transport, reporter=None, clock=time.time, stop_event=None, tracker=None):
        self.cfg = cfg
        self.transport = transport
        self.reporter = reporter or Reporter()
        self.clock = clock
        self.stop_event = stop_event or threading.Event()
        self.tracker = tracker or RttTracker()
        self.run_state = RunState(wait_timeout=cfg.wait_timeout)

    @property
    def state(self):
        return self.run_state.state

    def run(self):
        """Runs until stopped and returns the ProbeResult. Raises ProbeError on fatal errors."""
        rs = self.run_state
        rs.start_time = self.clock()
        self.reporter.start(self.cfg.target, self.transport.address, config.GTP_ECHO_SIZE)

        try:
            while rs.state is not ProbeState.STOPPED:
                if self.stop_event.is_set():
                    logging.info("Stop requested.")
                    self._transition(ProbeState.STOPPED)
                    break
                self._step()
        except ProbeError:
            rs.state = ProbeState.STOPPED
            raise

        result = self._result()
        self.reporter.finish(result)
        return result

    def _step(self):
        rs = self.run_state
        now = self.clock()

        if (rs.state is ProbeState.RUNNING and not self._count_reached()
                and (rs.last_send_time is None or now > rs.last_send_time + self.cfg.interval)):
            self._send(now)

        if rs.state is ProbeState.RUNNING and self._count_reached():
            self._transition(ProbeState.DRAINING)

        # Draining ends a full wait window after the last reply or the last send, whichever is later
        if rs.state is ProbeState.DRAINING:
            deadline = self._drain_deadline()
            if now > deadline:
                self._transition(ProbeState.STOPPED)
                return
            timewait = (deadline - now) / 2
        else:
            timewait = (rs.last_send_time + self.cfg.interval - now) / 2
        # Half the remaining time leaves room for the send decision on the next pass
        timewait = max(timewait, 0.0)

        logging.debug(f"Waiting up to {timewait * 1000:.1f} ms for replies")
        try:
            ready = self.transport.wait_readable(timewait)
        except InterruptedError:
            return
        except OSError as e:
            logging.error(f"Waiting for socket failed: {e}")
            raise ProbeError(f"poll(): {e}") from e
        if ready:
            self._receive()

    def _count_reached(self):
        return bool(self.cfg.count) and self.run_state.next_seq >= self.cfg.count

    def _drain_deadline(self):
        rs = self.run_state
        return max(rs.last_recv_time, rs.last_send_time) + rs.wait_timeout

    def _transition(self, new_state):
        logging.info(f"State {self.run_state.state.value} -> {new_state.value}")
        self.run_state.state = new_state

    def _send(self, now):
        rs = self.run_state
        seq = rs.next_seq % config.SEQ_MODULO
        rs.next_seq += 1
        self.tracker.record_send(seq, now)

        logging.debug(f"Sending GTP ping with seq={seq}")
        try:
            self.transport.send(build_echo_request(self.cfg.teid, seq))
        except ConnectionRefusedError as e:
            rs.refused += 1
            logging.warning(f"send(seq={seq}): {e}")
            self.reporter.unreachable()
        except OSError as e:
            logging.error(f"send(seq={seq}): {e}")
            raise ProbeError(f"send(): {e}") from e
        else:
            rs.sent += 1
            if self.cfg.flood:
                self.reporter.flood_sent()
        # Refused sends keep the cadence too
        rs.last_send_time = now

    def _receive(self):
        rs = self.run_state
        now = self.clock()
        try:
            dgram = self.transport.recv()
        except InterruptedError:
            return
        except OSError as e:
            if e.errno in SOFT_RECV_ERRNOS:
                rs.refused += 1
                logging.warning(f"recv(): {e}")
                self.reporter.unreachable()
                return
            logging.error(f"recv(): {e}")
            raise ProbeError(f"recv(): {e}") from e

        try:
            msg = parse_echo(dgram.data)
        except MalformedPacketError as e:
            logging.warning(f"Ignoring datagram: {e}")
            return
        if not msg.is_reply():
            logging.warning(f"Got non-EchoReply type of msg ({msg.msg_type})")
            return

        # Transaction id is not checked; any echo reply is accepted
        logging.debug(f"Echo reply seq={msg.seq} teid={msg.teid}")
        kind, latency = self.tracker.observe_reply(msg.seq, now)
        reordered = False
        if kind is ReplyKind.FRESH:
            reordered = self.tracker.detect_reorder(msg.seq)
            rs.received += 1
            rs.last_recv_time = now
            if self.cfg.adaptive_wait:
                self._adapt_wait()
        elif kind is ReplyKind.STALE:
            # Counted as received even though it cannot be timed
            rs.received += 1
        # Duplicates only show up on the report line

        if self.cfg.flood:
            if kind is not ReplyKind.DUPLICATE:
                self.reporter.flood_received()
            return
        self.reporter.reply(ReplyEvent(size=len(dgram.data),
                                       address=self.transport.address,
                                       seq=msg.seq,
                                       teid=msg.teid,
                                       latency=latency,
                                       ttl=dgram.ttl,
                                       tos=dgram.tos,
                                       duplicate=kind is ReplyKind.DUPLICATE,
                                       reordered=reordered))

    def _adapt_wait(self):
        rs = self.run_state
        rs.wait_timeout = config.ADAPTIVE_WAIT_FACTOR * self.tracker.mean
        logging.debug(f"Adaptive wait now {rs.wait_timeout * 1000:.3f} ms")

    def _result(self):
        rs = self.run_state
        return ProbeResult(target=self.cfg.target,
                           address=self.transport.address,
                           sent=rs.sent,
                           received=rs.received,
                           duplicates=self.tracker.duplicates,
                           reorders=self.tracker.reorders,
                           refused=rs.refused,
                           elapsed=self.clock() - rs.start_time,
                           rtt=self.tracker.summary())
