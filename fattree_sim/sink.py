"""Sink that absorbs finished requests and reports throughput."""

from __future__ import annotations

import math
from typing import Any

from fattree_sim.kernel import Module

_MIB = 1024.0 * 1024.0


def _throughput(total_bytes: int, now: float) -> float:
    if now == 0:
        return math.inf if total_bytes else math.nan
    return total_bytes / (_MIB * now)


class Sink(Module):
    """Counts the data of completed requests and emits throughput in MiB/s."""

    def __init__(self, name: str = "sink", index: int | None = None, **params: Any) -> None:
        super().__init__(name, index, **params)
        self.total_data_size = 0
        self.total_read_size = 0
        self.total_write_size = 0

    def initialize(self) -> None:
        self.total_data_size = 0
        self.total_read_size = 0
        self.total_write_size = 0

    def handle_message(self, msg: Any, is_self: bool) -> None:
        self.total_data_size += msg.data_size
        if msg.work_type == "r":
            self.total_read_size += msg.data_size
            self.emit("readThroughput", _throughput(self.total_read_size, self.now))
        else:
            self.total_write_size += msg.data_size
            self.emit("writeThroughput", _throughput(self.total_write_size, self.now))
        self.emit("throughput", _throughput(self.total_data_size, self.now))