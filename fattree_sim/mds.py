"""Metadata server: knows the storage layout and routes requests towards OSTs."""

from __future__ import annotations

from typing import Any, Iterable

from fattree_sim.kernel import Module, SimulationError


class MDS(Module):
    """Collects topology information and hands out random targets."""

    def __init__(self, name: str = "mds", index: int | None = None, **params: Any) -> None:
        super().__init__(name, index, **params)
        self.conn_map: dict[str, int] = {}
        self.comp_map: dict[str, set[str]] = {}
        self.all_osts: list[str] = []
        self.all_cns: list[str] = []

    def init_collect_comp_info(self, child: str, parent: str) -> None:
        """Record that ``child`` is reachable through ``parent``."""
        self.comp_map.setdefault(child, set()).add(parent)

    def initialize(self) -> None:
        for port in self.ports:
            if port.peer is None:
                continue
            neighbour = port.peer.owner.full_name
            self.init_collect_comp_info(neighbour, self.name)
            self.conn_map[neighbour] = port.index

    def handle_message(self, msg: Any, is_self: bool) -> None:
        oss_names = self.comp_map.get(msg.des_addr)
        if not oss_names:
            raise SimulationError(f"MDS knows no server for {msg.des_addr}")
        rand_oss = self.rand_choose(oss_names)
        msg.next_hop_addr = rand_oss
        rand_core = self.rand_choose(self.comp_map.get(rand_oss, ()))
        try:
            port = self.conn_map[rand_core]
        except KeyError:
            raise SimulationError(f"MDS is not connected to {rand_core}") from None
        self.send(msg, port)

    def rand_choose(self, names: Iterable[str]) -> str:
        """Pick one name uniformly at random."""
        candidates = sorted(names)
        if not candidates:
            raise SimulationError("MDS has no target to deliver!")
        return candidates[self.intuniform(0, len(candidates) - 1)]

    def add_ost(self, ost_name: str) -> None:
        if ost_name not in self.all_osts:
            self.all_osts.append(ost_name)

    def add_cn(self, cn_name: str) -> None:
        if cn_name not in self.all_cns:
            self.all_cns.append(cn_name)

    def rand_get_ost(self) -> str:
        """A random OST, used by compute nodes to pick a storage target."""
        if not self.all_osts:
            raise SimulationError("No OST is collected in MDS module!")
        return self.all_osts[self.intuniform(0, len(self.all_osts) - 1)]

    def total_num_cn(self) -> int:
        return len(self.all_cns)

    def rand_get_cn(self, src_cn_name: str) -> str:
        """A random compute node other than ``src_cn_name``."""
        if not self.all_cns:
            raise SimulationError("No CN is collected in MDS module!")
        if all(cn == src_cn_name for cn in self.all_cns):
            raise SimulationError(f"No CN other than {src_cn_name} is collected in MDS module!")
        while True:
            cn_name = self.all_cns[self.intuniform(0, len(self.all_cns) - 1)]
            if cn_name != src_cn_name:
                return cn_name