# tests/test_gtping.py
import argparse
import signal
import socket

import pytest

import gtping
from fakes import FakeClock, FakeTransport
from transport import SetupError


def parse(*argv):
    return gtping.config_from_args(gtping.build_argparser().parse_args(list(argv)))


def test_parse_tos():
    assert gtping.parse_tos("ef") == 0xB8
    assert gtping.parse_tos("AF41") == 34 << 2
    assert gtping.parse_tos("lowdelay") == 0x10
    assert gtping.parse_tos("0x20") == 0x20
    assert gtping.parse_tos("16") == 16
    for bad in ("256", "-1", "fast"):
        with pytest.raises(argparse.ArgumentTypeError):
            gtping.parse_tos(bad)


def test_defaults():
    cfg = parse("ggsn.test")
    assert cfg.target == "ggsn.test"
    assert cfg.port == 2123
    assert cfg.interval == 1.0
    assert cfg.count == 0
    assert cfg.adaptive_wait is True
    assert cfg.wait_timeout == 2.0
    assert cfg.family == socket.AF_UNSPEC
    assert cfg.ttl is None and cfg.tos is None


def test_all_options():
    cfg = parse("-6", "-c", "5", "-f", "-i", "0.2", "-l", "64", "-p", "3386",
                "-s", "0x10", "-t", "0.5", "-T", "af41", "-vv", "ggsn.test")
    assert cfg.family == socket.AF_INET6
    assert (cfg.count, cfg.flood, cfg.interval, cfg.ttl) == (5, True, 0.2, 64)
    assert (cfg.port, cfg.teid, cfg.tos, cfg.verbose) == (3386, 16, 34 << 2, 2)
    assert cfg.wait_timeout == 0.5
    assert cfg.adaptive_wait is False


@pytest.mark.parametrize("argv", [[], ["-p", "70000", "h"], ["-4", "-6", "h"], ["-i", "-1", "h"]])
def test_usage_errors_exit_2(argv):
    with pytest.raises(SystemExit) as exc:
        gtping.main(argv)
    assert exc.value.code == 2


def test_main_success(monkeypatch, capsys):
    transport = FakeTransport(FakeClock(), rtt=0.001)
    monkeypatch.setattr(gtping, "open_transport", lambda cfg: transport)
    assert gtping.main(["-c", "1", "-i", "0", "-t", "0.05", "ggsn.test"]) == 0
    assert transport.closed
    out = capsys.readouterr().out
    assert "GTPING ggsn.test (192.0.2.1) 12 bytes of data." in out
    assert "1 packets transmitted, 1 received, 0% packet loss" in out


def test_main_no_replies(monkeypatch):
    transport = FakeTransport(FakeClock(), drop_all=True)
    monkeypatch.setattr(gtping, "open_transport", lambda cfg: transport)
    assert gtping.main(["-c", "1", "-t", "0.05", "ggsn.test"]) == 1


def test_main_setup_error(monkeypatch):
    def fail(cfg):
        raise SetupError("unknown host")
    monkeypatch.setattr(gtping, "open_transport", fail)
    assert gtping.main(["ggsn.test"]) == 1


def test_main_fatal_transport_error(monkeypatch):
    transport = FakeTransport(FakeClock(), send_errors=[PermissionError(13, "Permission denied")])
    monkeypatch.setattr(gtping, "open_transport", lambda cfg: transport)
    assert gtping.main(["-c", "1", "ggsn.test"]) == 1
    assert transport.closed


def test_main_interrupted_during_setup(monkeypatch, capsys):
    """Ctrl-C while resolving the target: no banner, nothing sent."""
    transport = FakeTransport(FakeClock())

    def slow_resolve(cfg):
        signal.getsignal(signal.SIGINT)(signal.SIGINT, None)
        return transport

    monkeypatch.setattr(gtping, "open_transport", slow_resolve)
    assert gtping.main(["-c", "1", "ggsn.test"]) == 1
    assert transport.sent == []
    assert transport.closed
    assert "GTPING" not in capsys.readouterr().out
