"""A small discrete-event simulation kernel: modules, ports, channels, events."""

from __future__ import annotations

import heapq
import itertools
import random
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, ClassVar

_EPSILON = 1e-12


class SimulationError(RuntimeError):
    """Raised when the simulation reaches a state it cannot handle."""


class _StopSimulation(Exception):
    """Unwinds the event loop when a module ends the simulation."""


class Channel:
    """One direction of a link, with optional data rate (bit/s) and propagation delay."""

    def __init__(self, datarate: float | None = None, delay: float = 0.0) -> None:
        if datarate is not None and datarate <= 0:
            raise ValueError("datarate must be positive")
        if delay < 0:
            raise ValueError("delay must not be negative")
        self.datarate = datarate
        self.delay = delay
        self._finish_time = 0.0

    @property
    def is_transmission(self) -> bool:
        return self.datarate is not None

    def transmission_finish_time(self, now: float) -> float:
        """When the current transmission ends; ``now`` for channels without a data rate."""
        return self._finish_time if self.is_transmission else now

    def _transmit(self, start: float, byte_length: int) -> float:
        if not self.is_transmission:
            return start + self.delay
        if start < self._finish_time - _EPSILON:
            raise SimulationError("Cannot send message, channel is currently busy")
        self._finish_time = start + byte_length * 8 / self.datarate
        return self._finish_time + self.delay


@dataclass(eq=False)
class Port:
    """An output gate of a module and the gate it is connected to."""

    owner: Module
    index: int
    channel: Channel
    peer: Port | None = None


class Module:
    """Base class of simulated components."""

    DEFAULTS: ClassVar[dict[str, Any]] = {}

    def __init__(self, name: str, index: int | None = None, **params: Any) -> None:
        self.name = name
        self.index = index
        self.full_name = name if index is None else f"{name}[{index}]"
        self.params: dict[str, Any] = {**self.DEFAULTS, **params}
        self.ports: list[Port] = []
        self._sim: Simulation | None = None

    @property
    def sim(self) -> Simulation:
        if self._sim is None:
            raise SimulationError(f"{self.full_name} is not part of a simulation")
        return self._sim

    @property
    def now(self) -> float:
        return self.sim.now

    def initialize(self) -> None:
        """Called once before the first event is processed."""

    def handle_message(self, msg: Any, is_self: bool) -> None:
        """Process a message; ``is_self`` marks messages scheduled by this module."""
        raise SimulationError(f"{self.full_name} cannot handle messages")

    def finish(self) -> None:
        """Called when a run ends."""

    def _port(self, port: int) -> Port:
        if not 0 <= port < len(self.ports):
            raise SimulationError(f"{self.full_name} has no port {port}")
        return self.ports[port]

    def _mark_sender(self, msg: Any) -> None:
        if hasattr(msg, "sender"):
            msg.sender = self.name

    def send(self, msg: Any, port: int, delay: float = 0.0) -> None:
        """Send ``msg`` through ``port``, starting ``delay`` seconds from now."""
        if delay < 0:
            raise SimulationError("Send delay must not be negative")
        gate = self._port(port)
        if gate.peer is None:
            raise SimulationError(f"Port {port} of {self.full_name} is not connected")
        arrival = gate.channel._transmit(self.now + delay, getattr(msg, "byte_length", 0))
        self._mark_sender(msg)
        self.sim._schedule(arrival, gate.peer.owner, msg, False)

    def schedule_at(self, time: float, msg: Any) -> None:
        """Deliver ``msg`` back to this module at ``time``."""
        if time < self.now - _EPSILON:
            raise SimulationError(f"Cannot schedule message to the past: t={time}")
        self._mark_sender(msg)
        self.sim._schedule(max(time, self.now), self, msg, True)

    def emit(self, signal: str, value: Any) -> None:
        self.sim._record(self.full_name, signal, value)

    def uniform(self, low: float, high: float) -> float:
        return self.sim.rng.uniform(low, high)

    def intuniform(self, low: int, high: int) -> int:
        if high < low:
            raise SimulationError(f"intuniform(): wrong parameters a={low} b={high}")
        return self.sim.rng.randint(low, high)

    def departure_time(self, port: int) -> float:
        """Earliest time a new transmission may start on ``port``."""
        channel = self._port(port).channel
        return max(channel.transmission_finish_time(self.now), self.now)

    def sibling(self, name: str) -> Module:
        """Another module of the same simulation, looked up by full name."""
        return self.sim.module(name)


class Simulation:
    """Holds the modules, the event queue and the recorded signals."""

    def __init__(self, seed: int | None = None) -> None:
        self.rng = random.Random(seed)
        self._now = 0.0
        self._modules: dict[str, Module] = {}
        self._queue: list[tuple[float, int, Module, Any, bool]] = []
        self._counter = itertools.count()
        self._signals: defaultdict[tuple[str, str], list[Any]] = defaultdict(list)
        self._initialized = False

    @property
    def now(self) -> float:
        return self._now

    @property
    def modules(self) -> list[Module]:
        return list(self._modules.values())

    def add_module(self, module: Module) -> Module:
        if module.full_name in self._modules:
            raise SimulationError(f"Module {module.full_name} already exists")
        if module._sim is not None:
            raise SimulationError(f"{module.full_name} belongs to another simulation")
        module._sim = self
        self._modules[module.full_name] = module
        return module

    def connect(
        self,
        first: Module,
        second: Module,
        datarate: float | None = None,
        delay: float = 0.0,
    ) -> tuple[Port, Port]:
        """Link two modules in both directions; returns their new output ports."""
        for mod in (first, second):
            if self._modules.get(mod.full_name) is not mod:
                raise SimulationError(f"{mod.full_name} is not part of this simulation")
        out_first = Port(first, len(first.ports), Channel(datarate, delay))
        first.ports.append(out_first)
        out_second = Port(second, len(second.ports), Channel(datarate, delay))
        second.ports.append(out_second)
        out_first.peer = out_second
        out_second.peer = out_first
        return out_first, out_second

    def module(self, full_name: str) -> Module:
        try:
            return self._modules[full_name]
        except KeyError:
            raise SimulationError(f"No module named {full_name}") from None

    def _schedule(self, time: float, target: Module, msg: Any, is_self: bool) -> None:
        heapq.heappush(self._queue, (time, next(self._counter), target, msg, is_self))

    def _record(self, module_name: str, signal: str, value: Any) -> None:
        self._signals[(module_name, signal)].append(value)

    def run(self, until: float | None = None) -> float:
        """Process events up to ``until`` (or until none remain); returns the final time."""
        try:
            if not self._initialized:
                self._initialized = True
                for mod in self.modules:
                    mod.initialize()
            while self._queue:
                time, _, target, msg, is_self = self._queue[0]
                if until is not None and time > until:
                    break
                heapq.heappop(self._queue)
                self._now = time
                target.handle_message(msg, is_self)
        except _StopSimulation:
            self._queue.clear()
        for mod in self.modules:
            mod.finish()
        return self._now

    def stop(self) -> None:
        """End the running simulation immediately."""
        raise _StopSimulation()

    def signal_values(self, module_name: str, signal: str) -> list[Any]:
        return list(self._signals.get((module_name, signal), []))