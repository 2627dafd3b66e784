"""Fat-tree switch for the edge, aggregation and core layers."""

from __future__ import annotations

import re
from collections import deque
from typing import Any

from fattree_sim.kernel import Module, SimulationError
from fattree_sim.request import is_cn_name

# Which neighbours each layer reports to the metadata server as its children.
_REGISTERED_CHILDREN = {
    "core": ("aggr", "oss"),
    "aggr": ("edge",),
    "edge": ("cn",),
}


def _layer_pattern(layer: str) -> re.Pattern[str]:
    return re.compile(re.escape(layer) + r"\[[0-9]+\]")


class Switch(Module):
    """Routes requests between compute nodes, other switches, the MDS and OSSs.

    The layer is given by the module name: ``edge``, ``aggr`` or ``core``.
    """

    def __init__(self, name: str, index: int | None = None, **params: Any) -> None:
        super().__init__(name, index, **params)
        self.conn_map: dict[str, int] = {}
        self.buffer: deque[Any] = deque()

    def _param(self, key: str) -> Any:
        try:
            return self.params[key]
        except KeyError:
            raise SimulationError(f"{self.full_name} has no parameter {key!r}") from None

    def _neighbour(self, port: int) -> Module:
        peer = self._port(port).peer
        if peer is None:
            raise SimulationError(f"Port {port} of {self.full_name} is not connected")
        return peer.owner

    def _gate_to(self, name: str) -> int:
        try:
            return self.conn_map[name]
        except KeyError:
            raise SimulationError(f"{self.full_name} is not connected to {name}") from None

    def initialize(self) -> None:
        mds = self.sibling("mds")
        children = _REGISTERED_CHILDREN.get(self.name, ())
        for port in self.ports:
            if port.peer is None:
                continue
            neighbour = port.peer.owner
            self.conn_map[neighbour.full_name] = port.index
            if neighbour.name in children:
                mds.init_collect_comp_info(neighbour.full_name, self.full_name)

    def handle_message(self, msg: Any, is_self: bool) -> None:
        if is_self:
            self._release(msg)
        else:
            self._accept(msg)

    # -- routing -------------------------------------------------------------

    def _accept(self, req: Any) -> None:
        if self.name == "edge":
            gate_id = self._route_edge(req)
        elif self.name == "aggr":
            gate_id = self._route_aggr(req)
        elif self.name == "core":
            gate_id = self._route_core(req)
        else:
            raise SimulationError("Unknown switch appears!")

        if self.name != "core" or req.sender != "aggr" or is_cn_name(req.des_addr):
            self._enqueue(req, gate_id)
        else:
            # Core to MDS: no queueing, only the switching latency.
            proc_time = float(self._param("core_latency")) if req.byte_length else 0.0
            req.proc_time = proc_time
            self.send(req, gate_id, proc_time)

    def _route_edge(self, req: Any) -> int:
        if req.is_checkpoint() and (not req.ckp_launched or req.finished):
            target = req.src_addr if req.ckp_launched else req.des_addr
            return self.conn_map[target] if target in self.conn_map else self.rand_choose("aggr")
        if is_cn_name(req.des_addr):
            target = req.src_addr if req.finished else req.des_addr
            return self.conn_map[target] if target in self.conn_map else self.rand_choose("aggr")
        # Destination is an OST: data going up, or the reply coming back down.
        if req.work_type == "r":
            upward = not req.byte_length
        else:
            upward = bool(req.byte_length)
        return self.rand_choose("aggr") if upward else self._gate_to(req.src_addr)

    def _down_or_core(self, target: str) -> int:
        gate_id = self.find_cn(target, "edge")
        return self.rand_choose("core") if gate_id == -1 else gate_id

    def _down_to_edge(self, target: str) -> int:
        gate_id = self.find_cn(target, "edge")
        if gate_id == -1:
            raise SimulationError(f"{self.full_name} cannot reach {target}")
        return gate_id

    def _route_aggr(self, req: Any) -> int:
        if req.is_checkpoint() and (not req.ckp_launched or req.finished):
            target = req.src_addr if req.ckp_launched else req.des_addr
            return self._down_or_core(target)
        if req.sender not in ("edge", "core"):
            raise SimulationError("Aggr layer connected with other unknown switches!")
        if is_cn_name(req.des_addr):
            target = req.src_addr if req.finished else req.des_addr
            if req.sender == "edge":
                return self._down_or_core(target)
            return self._down_to_edge(target)
        if req.sender == "edge":
            return self.rand_choose("core")
        return self._down_to_edge(req.src_addr)

    def _route_core(self, req: Any) -> int:
        if req.is_checkpoint() and not req.ckp_launched:
            return self.find_aggr(req.des_addr)
        if is_cn_name(req.des_addr):
            return self.find_aggr(req.src_addr if req.finished else req.des_addr)
        if req.sender == "aggr":
            if "mds" not in self.conn_map:
                raise SimulationError(f"No MDS {req.next_hop_addr} exists!")
            return self.conn_map["mds"]
        if req.sender == "mds":
            if req.next_hop_addr not in self.conn_map:
                raise SimulationError(
                    f"{self.full_name} No such OSS {req.next_hop_addr} exists!"
                )
            return self.conn_map[req.next_hop_addr]
        if req.sender == "oss":
            return self.find_aggr(req.src_addr)
        raise SimulationError("Core layer connected with other unknown switches!")

    # -- queueing ------------------------------------------------------------

    def _enqueue(self, req: Any, gate_id: int) -> None:
        self.emit("queueLen", self.real_queue_length())
        req.arrive_time = self.now
        req.port_index = gate_id

        proc_time = float(self._param(f"{self.name}_latency")) if req.byte_length else 0.0
        if len(self.buffer) < int(self._param("proc_num")):
            req.leave_time = self.now + proc_time
        else:
            req.leave_time = self.buffer[-1].leave_time + proc_time
        req.proc_time = proc_time
        self.schedule_at(req.leave_time, req.dup())
        self.buffer.append(req)

    def _release(self, req: Any) -> None:
        self.buffer.popleft()
        departure = self.departure_time(req.port_index)
        next_name = self._neighbour(req.port_index).name
        self.send(req, req.port_index, departure - self.now)
        stay = departure - req.arrive_time
        if next_name not in ("cn", "mds"):
            self.emit("stayTime", stay)
        self.emit("waitingTime", stay - req.proc_time)

    # -- lookups -------------------------------------------------------------

    def check_port(self, port_name: str) -> bool:
        """Tell whether a module with this full name is directly connected."""
        return port_name in self.conn_map

    def rand_choose(self, layer: str) -> int:
        """A random port leading to a switch of ``layer``."""
        pattern = _layer_pattern(layer)
        gates = [port for name, port in self.conn_map.items() if pattern.fullmatch(name)]
        if not gates:
            raise SimulationError(f"Cannot find available hop station at {self.name}")
        return gates[self.intuniform(0, len(gates) - 1)]

    def find_cn(self, src: str, layer: str) -> int:
        """Port towards the ``layer`` neighbour that holds ``src``, or -1."""
        pattern = _layer_pattern(layer)
        for name, port in self.conn_map.items():
            if not pattern.fullmatch(name):
                continue
            neighbour = self._neighbour(port)
            if layer == "edge" and neighbour.check_port(src):
                return port
            if layer == "oss" and neighbour.find_ost(src):
                return port
        return -1

    def find_aggr(self, src: str) -> int:
        """A random port towards an aggregation switch that can reach ``src``."""
        pattern = _layer_pattern("aggr")
        candidates = [
            port
            for name, port in self.conn_map.items()
            if pattern.fullmatch(name) and self._neighbour(port).find_cn(src, "edge") != -1
        ]
        if not candidates:
            raise SimulationError(f"Cannot find available Aggr. Switch at {self.name}")
        return candidates[self.intuniform(0, len(candidates) - 1)]

    def real_queue_length(self) -> int:
        """Number of buffered requests that carry data."""
        return sum(1 for req in self.buffer if req.byte_length)

    def data_size_in_queue(self) -> int:
        """Total bytes carried by the buffered requests."""
        return sum(req.byte_length for req in self.buffer)