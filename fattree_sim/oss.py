"""Object storage server: sits between core switches and its OSTs."""

from __future__ import annotations

import re
from collections import deque
from typing import Any

from fattree_sim.kernel import Module, SimulationError


class OSS(Module):
    """Forwards requests between core switches and OSTs with a fixed latency."""

    def __init__(self, name: str = "oss", index: int | None = None, **params: Any) -> None:
        super().__init__(name, index, **params)
        self.conn_map: dict[str, int] = {}
        self.buffer: deque[Any] = deque()

    def _param(self, key: str) -> Any:
        try:
            return self.params[key]
        except KeyError:
            raise SimulationError(f"{self.full_name} has no parameter {key!r}") from None

    def initialize(self) -> None:
        mds = self.sibling("mds")
        for port in self.ports:
            if port.peer is None:
                continue
            neighbour = port.peer.owner
            self.conn_map[neighbour.full_name] = port.index
            if neighbour.name == "ost":
                mds.init_collect_comp_info(neighbour.full_name, self.full_name)
                mds.add_ost(neighbour.full_name)

    def handle_message(self, msg: Any, is_self: bool) -> None:
        if is_self:
            self._release(msg)
        else:
            self._accept(msg)

    def _accept(self, req: Any) -> None:
        if req.sender == "core":
            try:
                gate_id = self.conn_map[req.des_addr]
            except KeyError:
                raise SimulationError(
                    f"{self.full_name} is not connected to {req.des_addr}"
                ) from None
        elif req.sender == "ost":
            gate_id = self.rand_choose("core")
        else:
            raise SimulationError("Another unknown connection to OSS!")

        self.emit("queueLen", self.real_queue_length())
        req.port_index = gate_id
        req.arrive_time = self.now
        departure = self.departure_time(gate_id)

        proc_time = float(self._param("latency")) if req.byte_length else 0.0
        if len(self.buffer) < int(self._param("proc_num")):
            req.leave_time = departure + proc_time
        else:
            req.leave_time = self.buffer[-1].leave_time + proc_time
        req.proc_time = proc_time
        self.schedule_at(req.leave_time, req.dup())
        self.buffer.append(req)

    def _release(self, req: Any) -> None:
        self.buffer.popleft()
        departure = self.departure_time(req.port_index)
        peer = self._port(req.port_index).peer
        next_name = peer.owner.name if peer is not None else ""
        if next_name not in ("core", "ost"):
            raise SimulationError("OSS connected with unknown servers!")
        self.send(req, req.port_index, departure - self.now)
        stay = departure - req.arrive_time
        self.emit("stayTime", stay)
        self.emit("waitingTime", stay - req.proc_time)

    def find_ost(self, ost_name: str) -> bool:
        return ost_name in self.conn_map

    def rand_choose(self, layer: str) -> int:
        """A random port leading to a module of ``layer``."""
        pattern = re.compile(re.escape(layer) + r"\[[0-9]+\]")
        gates = [port for name, port in self.conn_map.items() if pattern.fullmatch(name)]
        if not gates:
            raise SimulationError(f"Cannot find available Core. Switch at {self.name}")
        return gates[self.intuniform(0, len(gates) - 1)]

    def real_queue_length(self) -> int:
        """Number of buffered requests that carry data."""
        return sum(1 for req in self.buffer if req.byte_length)

    def data_size_in_queue(self) -> int:
        """Total bytes carried by the buffered requests."""
        return sum(req.byte_length for req in self.buffer)