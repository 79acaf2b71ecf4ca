#!/usr/bin/env python3

import sys


def format_latency(latency):
    """Latency in seconds as printed on reply lines; None means unmeasurable."""
    if latency is None:
        return "Inf"
    return f"{latency * 1000:.2f} ms"


class Reporter:
    """Receives ping progress from GtpPinger. The base class prints nothing."""

    def start(self, target, address, size):
        pass

    def reply(self, event):
        pass

    def unreachable(self):
        pass

    def flood_sent(self):
        pass

    def flood_received(self):
        pass

    def finish(self, result):
        pass


class ConsoleReporter(Reporter):
    """ping(8)-style output."""

    def __init__(self, out=None):
        self.out = out or sys.stdout

    def _write(self, text):
        self.out.write(text)
        self.out.flush()

    def start(self, target, address, size):
        self._write(f"GTPING {target} ({address}) {size} bytes of data.\n")

    def reply(self, event):
        parts = [f"{event.size} bytes from {event.address}: seq={event.seq}"]
        if event.ttl is not None:
            parts.append(f"ttl={event.ttl}")
        if event.tos is not None:
            parts.append(f"tos={event.tos:02x}")
        parts.append(f"time={format_latency(event.latency)}")
        line = " ".join(parts)
        if event.duplicate:
            line += " (DUP!)"
        if event.reordered:
            line += " (out of order)"
        self._write(line + "\n")

    def unreachable(self):
        self._write("ICMP destination unreachable\n")

    def flood_sent(self):
        self._write(".")

    def flood_received(self):
        self._write("\b \b")

    def finish(self, result):
        lines = [
            "",
            f"--- {result.target} GTP ping statistics ---",
            f"{result.sent} packets transmitted, {result.received} received, "
            f"{int(result.loss_percent)}% packet loss, time {int(result.elapsed * 1000)}ms",
        ]
        if result.reorders or result.duplicates or result.refused:
            lines.append(f"{result.reorders} out of order, {result.duplicates} duplicates, "
                         f"{result.refused} connection refused")
        if result.rtt is not None:
            rtt = result.rtt
            lines.append(f"rtt min/avg/max/mdev = {rtt.min * 1000:.3f}/{rtt.mean * 1000:.3f}/"
                         f"{rtt.max * 1000:.3f}/{rtt.mdev * 1000:.3f} ms")
        self._write("\n".join(lines) + "\n")
