"""The request packet that travels through the storage network."""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass

MAX_ID = 2**32 - 1

_CN_NAME = re.compile(r"cn\[[0-9]+\]")


def is_cn_name(name: str) -> bool:
    """Tell whether ``name`` is the full name of a compute node, e.g. ``cn[3]``."""
    return _CN_NAME.fullmatch(name) is not None


@dataclass
class Request:
    """A read or write request, also used for checkpoint processes."""

    work_type: str = ""
    finished: bool = False
    ckp_launched: bool = False
    port_index: int = 0
    id: int = 0
    master_id: int = 0
    num_proc: int = 0
    data_size: int = 0
    proc_time: float = 0.0
    src_addr: str = ""
    des_addr: str = ""
    master_id_addr: str = ""
    next_hop_addr: str = ""
    generate_time: float = 0.0
    arrive_time: float = 0.0
    leave_time: float = 0.0
    byte_length: int = 0
    sender: str = ""

    def dup(self) -> Request:
        """Return an independent copy of this request."""
        return dataclasses.replace(self)

    def is_checkpoint(self) -> bool:
        """Tell whether the request belongs to a checkpoint rooted at a compute node."""
        return is_cn_name(self.master_id_addr)