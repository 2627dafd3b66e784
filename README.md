# fattree_sim

A discrete-event simulation of a fat-tree network in front of a parallel
file system. Compute nodes generate read, write and checkpoint workloads.
These travel through edge, aggregation and core switches to object storage
servers (OSS) and object storage targets (OST). A metadata server (MDS)
picks the storage server and core switch for each request. A sink collects
finished requests and records throughput.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Building blocks

- `fattree_sim.kernel` is a small event kernel:
  - `Simulation(seed=None)` owns the modules, the event queue and a
    `random.Random` generator. `add_module` registers a module and returns
    it. `connect(first, second, datarate=None, delay=0.0)` links two modules
    in both directions and appends one new port to each. `run(until=None)`
    initializes the modules on its first call, then processes events and
    calls `finish` on every module. `stop()` ends a run.
    `signal_values(module_name, signal)` returns the values recorded for
    one signal.
  - `Module` is the base class of all components. A module's full name is
    `name` or `name[index]`. Keyword arguments given to the constructor
    become `params`.
  - `Channel` carries an optional data rate in bit/s and a propagation
    delay. `Port` holds one output gate. `SimulationError` is raised for
    states the simulation cannot handle.
- `fattree_sim.request` holds `Request`, the packet that moves through the
  network. `Request.dup` returns a copy of it. `Request.is_checkpoint` tells
  whether the request belongs to a checkpoint. `is_cn_name` tests for
  compute-node names such as `cn[3]`.
- The network components are:
  - `fattree_sim.compute_node.ComputeNode`
  - `fattree_sim.switch.Switch`, whose name must be `edge`, `aggr` or `core`
  - `fattree_sim.mds.MDS`
  - `fattree_sim.oss.OSS`
  - `fattree_sim.ost.OST`
  - `fattree_sim.sink.Sink`
- `fattree_sim.queueing` gives analytic reference values for M/M/1 and
  M/M/m queues: `fac`, `mm1_queue_len`, `mm1_delay`, `mmm_pmf`,
  `mmm_queue_len` and `mmm_delay`.

## Wiring rules

- The metadata server must be added under the full name `mds`. Switches,
  servers and compute nodes look it up under that name.
- A compute node uses exactly its ports 0 and 1. One leads to an `edge`
  switch; the other leads to the sink.
- Modules are found by their names (`cn`, `edge`, `aggr`, `core`, `mds`,
  `oss`, `ost`). Neighbours are told apart by full names of the form
  `name[index]`.

## Parameters

None of these have defaults, so each module must be given the ones it
reads:

| Module | Parameters |
| --- | --- |
| `ComputeNode` | `sendInitialMessage`, `sendInterval` (seconds, or a callable returning seconds), `data_size` (MiB), `read_percent`, `to_cn_chance`, `ckp_proc_chance`, `ckp_ranks_per_cn`, `ckp_cn_num`, `read_latency`, `write_latency` (seconds per MiB), `proc_num` |
| `Switch` | `proc_num`, and `edge_latency`, `aggr_latency` or `core_latency` to match its layer |
| `OSS` | `latency`, `proc_num` |
| `OST` | `read_latency`, `write_latency` (seconds per MiB), `proc_num` |

## Example

```python
from fattree_sim.compute_node import ComputeNode
from fattree_sim.kernel import Simulation
from fattree_sim.mds import MDS
from fattree_sim.oss import OSS
from fattree_sim.ost import OST
from fattree_sim.sink import Sink
from fattree_sim.switch import Switch

sim = Simulation(seed=1)
mds = sim.add_module(MDS())
sink = sim.add_module(Sink())
cn = sim.add_module(ComputeNode(
    index=0, sendInitialMessage=True, sendInterval=0.01, data_size=1.0,
    read_percent=0.5, to_cn_chance=0.0, ckp_proc_chance=0.0,
    ckp_ranks_per_cn=1, ckp_cn_num=0,
    read_latency=0.001, write_latency=0.002, proc_num=4,
))
edge = sim.add_module(Switch("edge", 0, proc_num=4, edge_latency=1e-5))
aggr = sim.add_module(Switch("aggr", 0, proc_num=4, aggr_latency=1e-5))
core = sim.add_module(Switch("core", 0, proc_num=4, core_latency=1e-5))
oss = sim.add_module(OSS(index=0, latency=1e-4, proc_num=4))
ost = sim.add_module(OST(index=0, read_latency=0.001, write_latency=0.002, proc_num=4))

sim.connect(cn, edge)   # port 0 of the compute node
sim.connect(cn, sink)   # port 1 of the compute node
sim.connect(edge, aggr)
sim.connect(aggr, core)
sim.connect(core, mds)
sim.connect(core, oss)
sim.connect(oss, ost)

sim.run(until=1.0)
print(sim.signal_values("sink", "throughput")[-1])
```

## Signals

Components emit these signals:

- `queueLen`: compute nodes, switches, OSSs and OSTs
- `stayTime`: switches, OSSs and OSTs
- `waitingTime`: compute nodes, switches, OSSs and OSTs
- `readDurationInSystem` and `writeDurationInSystem`: compute nodes
- `throughput`, `readThroughput` and `writeThroughput` (MiB/s): the sink

## Analytic check

```python
from fattree_sim.queueing import mm1_delay, mmm_delay

print(mm1_delay(0.5, 1.0))    # 2.0
print(mmm_delay(1.0, 1.0, 2))
```

## What it does not do

- There is no command-line program. A simulation is built and run from
  Python, as shown above.
- There is no topology or configuration file format. Modules, links and
  parameters are created in code, and nothing builds a full fat tree of a
  given size for you.
- Recorded signals stay in memory. Nothing writes result files or
  computes statistics over them.