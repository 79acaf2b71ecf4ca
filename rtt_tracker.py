#!/usr/bin/env python3

import enum
import math
from dataclasses import dataclass
from typing import Optional

import config


class ReplyKind(enum.Enum):
    FRESH = "fresh"
    DUPLICATE = "duplicate"
    STALE = "stale"


@dataclass
class SequenceSlot:
    send_time: Optional[float] = None
    delivered: int = 0


@dataclass(frozen=True)
class RttSummary:
    """Aggregate RTT statistics, all values in seconds."""
    count: int
    min: float
    max: float
    mean: float
    mdev: float


class RttTracker:
    """
    Remembers send times for the last `size` sequence numbers and turns
    replies into latency samples.

    Slots are indexed by `seq % size`. A reply whose sequence is `size` or
    more behind the next sequence to be sent has lost its slot and is
    reported as stale, without a latency.
    """

    def __init__(self, size=config.SENDTIMES_SIZE):
        self.size = size
        self.slots = [SequenceSlot() for _ in range(size)]
        self.next_seq = 0
        self.highest_seq = None # Highest fresh sequence seen so far
        self.duplicates = 0
        self.reorders = 0
        # Running aggregates over fresh replies only
        self.count = 0
        self.total = 0.0
        self.total_squared = 0.0
        self.min = None
        self.max = None

    def record_send(self, seq, send_time):
        slot = self.slots[seq % self.size]
        slot.send_time = send_time
        slot.delivered = 0
        self.next_seq = (seq + 1) % config.SEQ_MODULO

    def observe_reply(self, seq, now):
        """
        Classifies a reply for `seq` received at `now`.

        Returns:
            (ReplyKind, latency) where latency is None for stale replies.
        """
        slot = self.slots[seq % self.size]
        # Slot overwritten by a newer send, or never used: no send time to measure against
        if (self.next_seq - seq) % config.SEQ_MODULO >= self.size or slot.send_time is None:
            return ReplyKind.STALE, None

        latency = now - slot.send_time
        if slot.delivered > 0:
            # Already matched once; time it for the report but keep it out of the stats
            self.duplicates += 1
            return ReplyKind.DUPLICATE, latency

        slot.delivered += 1
        self._add_sample(latency)
        return ReplyKind.FRESH, latency

    def detect_reorder(self, seq):
        """Call for fresh replies only. Returns True if `seq` arrived out of order."""
        # Behind the highest seen by less than half the sequence space, so a wrap to 0 counts as ahead
        behind = None if self.highest_seq is None else (self.highest_seq - seq) % config.SEQ_MODULO
        if behind is not None and 0 < behind < config.SEQ_MODULO // 2:
            self.reorders += 1
            return True
        self.highest_seq = seq
        return False

    def _add_sample(self, latency):
        self.count += 1
        self.total += latency
        self.total_squared += latency * latency
        if self.min is None or latency < self.min:
            self.min = latency
        if self.max is None or latency > self.max:
            self.max = latency

    @property
    def mean(self):
        if not self.count:
            return None
        return self.total / self.count

    def summary(self):
        """Returns an RttSummary, or None if no sample has been taken."""
        if not self.count:
            return None
        variance = (self.total_squared - self.total * self.total / self.count) / self.count
        return RttSummary(count=self.count,
                          min=self.min,
                          max=self.max,
                          mean=self.total / self.count,
                          mdev=math.sqrt(max(variance, 0.0))) # rounding can dip below zero
