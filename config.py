"""
Configuration constants for gtping.
"""

import socket
from dataclasses import dataclass
from typing import Optional

VERSION = "0.15"

# --- Network Configuration ---
DEFAULT_PORT = 2123 # GTP-C
DEFAULT_TEID = 0

# --- Ping Timing Configuration ---
DEFAULT_INTERVAL_S = 1.0
DEFAULT_WAIT_S = 2.0 # Reply wait before adaptive timeout kicks in
ADAPTIVE_WAIT_FACTOR = 2.0 # wait = factor * mean RTT

# --- RTT Tracking Configuration ---
SENDTIMES_SIZE = 1000 # Ring buffer slots; older replies are unmeasurable
SEQ_MODULO = 1 << 16 # Sequence field is 16 bits on the wire

# --- GTP Echo Configuration ---
GTP_FLAGS = 0x32 # Version 1, PT=1, S=1
GTP_ECHO_REQUEST = 0x01
GTP_ECHO_REPLY = 0x02
GTP_ECHO_PAYLOAD_LEN = 4
GTP_ECHO_SIZE = 12

# --- Logging Configuration ---
LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s'

# --- IP TOS / DSCP names ---
TOS_NAMES = {
    "mincost": 0x02,
    "reliability": 0x04,
    "throughput": 0x08,
    "lowdelay": 0x10,
    "be": 0x00,
    "ef": 46 << 2,
    "af11": 10 << 2, "af12": 12 << 2, "af13": 14 << 2,
    "af21": 18 << 2, "af22": 20 << 2, "af23": 22 << 2,
    "af31": 26 << 2, "af32": 28 << 2, "af33": 30 << 2,
    "af41": 34 << 2, "af42": 36 << 2, "af43": 38 << 2,
    "cs0": 0 << 5, "cs1": 1 << 5, "cs2": 2 << 5, "cs3": 3 << 5,
    "cs4": 4 << 5, "cs5": 5 << 5, "cs6": 6 << 5, "cs7": 7 << 5,
}


@dataclass(frozen=True)
class ProbeConfig:
    """Settings for one ping run. Never mutated once the run starts."""
    target: str
    port: int = DEFAULT_PORT
    teid: int = DEFAULT_TEID
    interval: float = DEFAULT_INTERVAL_S
    wait_timeout: float = DEFAULT_WAIT_S
    adaptive_wait: bool = True
    flood: bool = False
    count: int = 0 # 0 = until interrupted
    family: int = socket.AF_UNSPEC
    ttl: Optional[int] = None
    tos: Optional[int] = None
    verbose: int = 0
