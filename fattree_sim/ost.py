"""Object storage target: reads or writes data with a per-MiB latency."""

from __future__ import annotations

from collections import deque
from typing import Any

from fattree_sim.kernel import Module, SimulationError

_MIB = 1024.0 * 1024.0


class OST(Module):
    """A disk that serves requests in FIFO order with ``proc_num`` parallel slots."""

    def __init__(self, name: str = "ost", index: int | None = None, **params: Any) -> None:
        super().__init__(name, index, **params)
        self.buffer: deque[Any] = deque()

    def initialize(self) -> None:
        """Start with an empty buffer."""
        self.buffer.clear()

    def _param(self, key: str) -> Any:
        try:
            return self.params[key]
        except KeyError:
            raise SimulationError(f"{self.full_name} has no parameter {key!r}") from None

    def handle_message(self, msg: Any, is_self: bool) -> None:
        if is_self:
            self._release(msg)
        else:
            self._accept(msg)

    def _accept(self, req: Any) -> None:
        gate_id = self.intuniform(0, len(self.ports) - 1)
        req.arrive_time = self.now
        self.emit("queueLen", len(self.buffer))

        if req.work_type == "r":
            req.byte_length = req.data_size
            latency = float(self._param("read_latency"))
        elif req.work_type == "w":
            req.byte_length = 0
            latency = float(self._param("write_latency"))
        else:
            raise SimulationError(f"Need define new rules for type: {req.work_type} !")

        req.port_index = gate_id
        service = latency * (req.data_size / _MIB)
        if len(self.buffer) < int(self._param("proc_num")):
            req.leave_time = req.arrive_time + service
        else:
            req.leave_time = self.buffer[-1].leave_time + service

        req.finished = True
        req.proc_time = service
        self.schedule_at(req.leave_time, req.dup())
        self.buffer.append(req)

    def _release(self, req: Any) -> None:
        self.buffer.popleft()
        departure = self.departure_time(req.port_index)
        self.send(req, req.port_index, departure - self.now)
        stay = departure - req.arrive_time
        self.emit("stayTime", stay)
        self.emit("waitingTime", stay - req.proc_time)

    def data_size_in_queue(self) -> int:
        """Total data size of the requests still held in the buffer."""
        return sum(req.data_size for req in self.buffer)