"""Compute node: generates workload, serves peer requests and runs checkpoints."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any

from fattree_sim.kernel import Module, SimulationError
from fattree_sim.mds import MDS
from fattree_sim.request import MAX_ID, Request

_MIB = 1024.0 * 1024.0

logger = logging.getLogger(__name__)


@dataclass
class _Checkpoint:
    """Accumulated state of a checkpoint at its root compute node."""

    request: Request
    finished: int = 0


class ComputeNode(Module):
    """A compute node attached to one edge switch and one sink."""

    def __init__(self, name: str = "cn", index: int | None = None, **params: Any) -> None:
        super().__init__(name, index, **params)
        self.idx = 1
        self.gate_to_edge = -1
        self.gate_to_sink = -1
        self.buffer: deque[Request] = deque()
        self.ckp_root_process: dict[int, _Checkpoint] = {}
        self.ckp_ready: set[int] = set()

    def _param(self, key: str) -> Any:
        try:
            return self.params[key]
        except KeyError:
            raise SimulationError(f"{self.full_name} has no parameter {key!r}") from None

    def _mds(self) -> MDS:
        mds = self.sibling("mds")
        if not isinstance(mds, MDS):
            raise SimulationError("Module 'mds' is not a metadata server")
        return mds

    def _send_to_edge(self, req: Request) -> None:
        departure = self.departure_time(self.gate_to_edge)
        self.send(req, self.gate_to_edge, departure - self.now)

    def initialize(self) -> None:
        self.idx = 1
        if self._param("sendInitialMessage"):
            self.schedule_at(self.now, Request(finished=False))

        for port_index in (0, 1):
            peer = self._port(port_index).peer
            if peer is None:
                raise SimulationError(f"Port {port_index} of {self.full_name} is not connected")
            if peer.owner.name == "edge":
                self.gate_to_edge = port_index
            else:
                self.gate_to_sink = port_index

        self._mds().add_cn(self.full_name)

    def handle_message(self, msg: Any, is_self: bool) -> None:
        if self.idx == MAX_ID:
            logger.error("Generated workload count has reached the maximum quota: %d", MAX_ID)
            self.sim.stop()
            return
        if is_self:
            self._on_timer(msg)
        else:
            self._on_arrival(msg)

    # -- self messages -------------------------------------------------------

    def _on_timer(self, req: Request) -> None:
        if not req.finished:
            self.init_msg(req, self.idx)
            self.idx += 1
            interval = self._param("sendInterval")
            if callable(interval):
                interval = interval()
            self.schedule_at(self.now + float(interval), Request(finished=False))
            return

        self.buffer.popleft()
        departure = self.departure_time(self.gate_to_edge)
        self.emit("waitingTime", (departure - req.arrive_time) - req.proc_time)
        self.send(req, self.gate_to_edge, departure - self.now)

    # -- arrivals from the edge switch ---------------------------------------

    def _on_arrival(self, req: Request) -> None:
        req.arrive_time = self.now
        mds = self._mds()

        if req.src_addr == self.full_name:
            self._arrive_at_source(req, mds)
        elif req.des_addr == self.full_name:
            self._arrive_at_destination(req, mds)
        else:
            raise SimulationError("There is a request that is not supposed here!")

        self.emit("queueLen", len(self.buffer))

    def _arrive_at_source(self, req: Request, mds: MDS) -> None:
        if not req.is_checkpoint():
            signal = "readDurationInSystem" if req.work_type == "r" else "writeDurationInSystem"
            self.emit(signal, self.now - req.generate_time)
            self.send(req, self.gate_to_sink)
            return

        if not req.ckp_launched:
            # The root checkpoint process starts writing now.
            if req.work_type == "w":
                req.byte_length = req.data_size
            req.des_addr = mds.rand_get_ost()
            req.ckp_launched = True
            first = req.dup()
            first.data_size = 0
            self.ckp_root_process.setdefault(req.master_id, _Checkpoint(first)).request = first
            self._send_to_edge(req)
        elif req.master_id_addr == self.full_name:
            self._collect_checkpoint(req)
        else:
            # A non-root process finished and reports to its root node.
            req.src_addr = req.master_id_addr
            self._send_to_edge(req)

    def _collect_checkpoint(self, req: Request) -> None:
        entry = self.ckp_root_process.get(req.master_id)
        if entry is None:
            raise SimulationError(f"Unknown checkpoint {req.master_id} at {self.full_name}")
        entry.finished += 1
        if req.master_id == req.id:
            self.ckp_ready.add(req.master_id)

        previous = entry.request
        merged = req.dup()
        merged.num_proc = max(previous.num_proc, req.num_proc)
        merged.byte_length = previous.byte_length + req.byte_length
        merged.data_size = previous.data_size + req.data_size
        entry.request = merged

        if self.check_ckp_finished(req.master_id):
            self.send(merged, self.gate_to_sink)
            self.ckp_ready.discard(req.master_id)
            del self.ckp_root_process[req.master_id]

    def _arrive_at_destination(self, req: Request, mds: MDS) -> None:
        if req.is_checkpoint() and not req.ckp_launched:
            # A checkpoint process handed over by its root.
            if req.work_type == "w":
                req.byte_length = req.data_size
            req.src_addr = self.full_name
            req.des_addr = mds.rand_get_ost()
            req.ckp_launched = True
            self._send_to_edge(req)
            return

        if req.work_type == "r":
            req.byte_length = req.data_size
            latency = float(self._param("read_latency"))
        else:
            req.byte_length = 0
            latency = float(self._param("write_latency"))

        service = latency * (req.data_size / _MIB)
        if len(self.buffer) < int(self._param("proc_num")):
            req.leave_time = self.now + service
        else:
            req.leave_time = self.buffer[-1].leave_time + service
        req.proc_time = service
        req.finished = True
        self.schedule_at(req.leave_time, req.dup())
        self.buffer.append(req)

    # -- workload generation -------------------------------------------------

    def set_msg(self, req: Request) -> None:
        """Fill in size and type of ``req`` and send it towards the edge switch."""
        req.data_size = int(float(self._param("data_size")) * 1024 * 1024)

        if self.uniform(0.0, 1.0) < float(self._param("read_percent")):
            req.work_type = "r"
        else:
            req.work_type = "w"
            if not req.is_checkpoint():
                req.byte_length = req.data_size

        req.generate_time = self.now
        self._send_to_edge(req)

    def init_msg(self, req: Request, req_id: int) -> None:
        """Turn a fresh request into a peer, checkpoint or storage request."""
        mds = self._mds()
        req.src_addr = self.full_name
        req.id = req_id
        req.master_id = req_id
        req.num_proc = 0
        req.ckp_launched = False

        to_cn = float(self._param("to_cn_chance"))
        ckp = float(self._param("ckp_proc_chance"))
        prob = self.uniform(0.0, 1.0)
        if prob < to_cn:
            req.des_addr = mds.rand_get_cn(self.full_name)
            self.set_msg(req)
        elif prob < to_cn + ckp:
            ranks = int(self._param("ckp_ranks_per_cn"))
            selected = sorted(self.select_ckp_cns())
            total_proc = len(selected) * ranks
            for cn_name in selected:
                for rank in range(ranks):
                    new_req = req.dup()
                    new_req.master_id_addr = self.full_name
                    new_req.des_addr = cn_name
                    if rank == 0 and cn_name == self.full_name:
                        new_req.num_proc = total_proc
                        self.ckp_root_process[new_req.master_id] = _Checkpoint(new_req)
                    else:
                        new_req.id = MAX_ID
                    self.set_msg(new_req)
        else:
            req.des_addr = mds.rand_get_ost()
            self.set_msg(req)

    def check_ckp_finished(self, root_id: int) -> bool:
        """Tell whether every process of checkpoint ``root_id`` has reported back."""
        entry = self.ckp_root_process.get(root_id)
        if entry is None or root_id not in self.ckp_ready:
            return False
        return entry.request.num_proc == entry.finished

    def select_ckp_cns(self) -> set[str]:
        """This node plus ``ckp_cn_num`` other randomly chosen compute nodes."""
        cn_num = int(self._param("ckp_cn_num"))
        mds = self._mds()
        if cn_num >= mds.total_num_cn():
            raise SimulationError(
                f"Checkpoint needs {cn_num} other compute nodes, "
                f"only {mds.total_num_cn()} are known"
            )
        chosen: set[str] = set()
        while len(chosen) < cn_num:
            chosen.add(mds.rand_get_cn(self.full_name))
        chosen.add(self.full_name)
        return chosen

    def finish(self) -> None:
        self.ckp_ready.clear()
        self.ckp_root_process.clear()