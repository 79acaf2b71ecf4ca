#!/usr/bin/env python3
# Usage:
#   gtping [-hV46f] [-c count] [-i interval] [-p port] [-t wait] [-T tos] [-l ttl] [-s teid] [-v] <target>
# Examples:
#   gtping 10.0.0.1
#   gtping -c 5 -i 0.2 -T ef ggsn.example.net

import argparse
import logging
import signal
import socket
import sys
import threading

import config
from pinger import GtpPinger, ProbeError
from reporter import ConsoleReporter
from transport import SetupError, open_transport


def _bounded_int(lo, hi):
    def parse(value):
        try:
            n = int(value, 0)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
        if not lo <= n <= hi:
            raise argparse.ArgumentTypeError(f"{value} out of range ({lo}-{hi})")
        return n
    return parse


def _non_negative_float(value):
    try:
        f = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if f < 0:
        raise argparse.ArgumentTypeError(f"{value} must not be negative")
    return f


def parse_tos(value):
    """TOS byte from a symbolic name (see config.TOS_NAMES) or a number 0-255."""
    name = value.lower()
    if name in config.TOS_NAMES:
        return config.TOS_NAMES[name]
    return _bounded_int(0, 255)(value)


def build_argparser():
    ap = argparse.ArgumentParser(prog="gtping", description="Send GTP echo requests and time the replies.")
    ap.add_argument("target", help="Host name or address of the GTP-C peer")
    family = ap.add_mutually_exclusive_group()
    family.add_argument("-4", dest="family", action="store_const", const=socket.AF_INET,
                        default=socket.AF_UNSPEC, help="Force IPv4")
    family.add_argument("-6", dest="family", action="store_const", const=socket.AF_INET6,
                        help="Force IPv6")
    ap.add_argument("-c", "--count", type=_bounded_int(0, 2**32 - 1), default=0,
                    help="Stop after sending count pings (default: 0=infinite)")
    ap.add_argument("-f", "--flood", action="store_true",
                    help="Print '.' per request and erase it per reply instead of reply lines")
    ap.add_argument("-i", "--interval", type=_non_negative_float, default=config.DEFAULT_INTERVAL_S,
                    help=f"Seconds between pings (default: {config.DEFAULT_INTERVAL_S:.1f})")
    ap.add_argument("-l", "--ttl", type=_bounded_int(1, 255), default=None,
                    help="Outgoing IP TTL / hop limit")
    ap.add_argument("-p", "--port", type=_bounded_int(1, 65535), default=config.DEFAULT_PORT,
                    help=f"GTP-C UDP port to ping (default: {config.DEFAULT_PORT})")
    ap.add_argument("-s", "--teid", type=_bounded_int(0, 2**32 - 1), default=config.DEFAULT_TEID,
                    help=f"Transaction identifier to send (default: {config.DEFAULT_TEID})")
    ap.add_argument("-t", "--wait", type=_non_negative_float, default=None,
                    help="Seconds to wait for the last reply (default: 2 x mean RTT, "
                         f"{config.DEFAULT_WAIT_S:.1f} until the first reply)")
    ap.add_argument("-T", "--tos", type=parse_tos, default=None,
                    help="IP TOS / traffic class, numeric or a name such as ef, af41, lowdelay")
    ap.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity level")
    ap.add_argument("-V", "--version", action="version", version=f"%(prog)s {config.VERSION}")
    return ap


def config_from_args(args):
    return config.ProbeConfig(
        target=args.target,
        port=args.port,
        teid=args.teid,
        interval=args.interval,
        wait_timeout=config.DEFAULT_WAIT_S if args.wait is None else args.wait,
        adaptive_wait=args.wait is None,
        flood=args.flood,
        count=args.count,
        family=args.family,
        ttl=args.ttl,
        tos=args.tos,
        verbose=args.verbose,
    )


def setup_logging(verbose):
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=config.LOG_FORMAT)


def main(argv=None):
    args = build_argparser().parse_args(argv)
    cfg = config_from_args(args)
    setup_logging(cfg.verbose)

    stop_event = threading.Event()

    def sigint(signum, frame):
        stop_event.set()

    previous_handler = signal.signal(signal.SIGINT, sigint)
    try:
        try:
            transport = open_transport(cfg)
        except SetupError as e:
            logging.error(f"{cfg.target}: {e}")
            return 1

        pinger = GtpPinger(cfg, transport, reporter=ConsoleReporter(), stop_event=stop_event)
        try:
            # Interrupted while resolving: nothing was sent, skip banner and summary
            if stop_event.is_set():
                logging.info("Interrupted during setup.")
                return 1
            result = pinger.run()
        except ProbeError as e:
            logging.error(f"Ping aborted: {e}")
            return 1
        finally:
            transport.close()
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
