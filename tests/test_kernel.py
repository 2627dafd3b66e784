import pytest

from fattree_sim.kernel import Channel, Module, Simulation, SimulationError
from fattree_sim.request import Request


class Driver(Module):
    def __init__(self, name, index=None, setup=None, react=None):
        super().__init__(name, index)
        self.setup = setup
        self.react = react
        self.log = []

    def initialize(self):
        if self.setup:
            self.setup(self)

    def handle_message(self, msg, is_self):
        self.log.append((self.now, msg, is_self))
        if self.react:
            self.react(self, msg, is_self)


class Tuned(Module):
    DEFAULTS = {"proc_num": 4, "latency": 0.5}


def test_full_name():
    assert Module("cn", 3).full_name == "cn[3]"
    assert Module("mds").full_name == "mds"


def test_params_merge_defaults():
    sim = Simulation()
    mod = sim.add_module(Tuned("x", latency=0.25))
    assert mod.params == {"proc_num": 4, "latency": 0.25}


def test_self_messages_in_time_order():
    def setup(mod):
        mod.schedule_at(2.0, "b")
        mod.schedule_at(1.0, "a")
        mod.schedule_at(2.0, "c")

    sim = Simulation()
    drv = sim.add_module(Driver("d", setup=setup))
    end = sim.run()
    assert [(t, m, s) for t, m, s in drv.log] == [
        (1.0, "a", True),
        (2.0, "b", True),
        (2.0, "c", True),
    ]
    assert end == 2.0


def test_send_over_delay_channel():
    sim = Simulation()
    src = sim.add_module(Driver("src", setup=lambda m: m.send("hello", 0)))
    dst = sim.add_module(Driver("dst"))
    sim.connect(src, dst, delay=0.25)
    sim.run()
    assert dst.log == [(0.25, "hello", False)]


def test_transmission_channel_timing():
    state = {}

    def setup(mod):
        mod.send(Request(byte_length=125), 0)
        state["departure"] = mod.departure_time(0)

    sim = Simulation()
    src = sim.add_module(Driver("src", setup=setup))
    dst = sim.add_module(Driver("dst"))
    sim.connect(src, dst, datarate=1000, delay=0.5)
    sim.run()
    assert state["departure"] == pytest.approx(1.0)
    assert dst.log[0][0] == pytest.approx(1.5)


def test_busy_channel_raises():
    def setup(mod):
        mod.send(Request(byte_length=100), 0)
        mod.send(Request(byte_length=100), 0)

    sim = Simulation()
    src = sim.add_module(Driver("src", setup=setup))
    dst = sim.add_module(Driver("dst"))
    sim.connect(src, dst, datarate=1000)
    with pytest.raises(SimulationError):
        sim.run()


def test_delayed_send_after_busy_period_succeeds():
    def setup(mod):
        mod.send(Request(byte_length=100), 0)
        mod.send(Request(byte_length=100), 0, mod.departure_time(0) - mod.now)

    sim = Simulation()
    src = sim.add_module(Driver("src", setup=setup))
    dst = sim.add_module(Driver("dst"))
    sim.connect(src, dst, datarate=1000)
    sim.run()
    times = [t for t, _, _ in dst.log]
    assert len(times) == 2
    assert times[1] == pytest.approx(2 * times[0])


def test_sender_name_is_recorded():
    sim = Simulation()
    src = sim.add_module(Driver("edge", 0, setup=lambda m: m.send(Request(), 0)))
    dst = sim.add_module(Driver("aggr", 1))
    sim.connect(src, dst)
    sim.run()
    assert dst.log[0][1].sender == "edge"


def test_schedule_in_past_raises():
    def react(mod, msg, is_self):
        mod.schedule_at(0.5, "late")

    sim = Simulation()
    sim.add_module(Driver("d", setup=lambda m: m.schedule_at(1.0, "x"), react=react))
    with pytest.raises(SimulationError):
        sim.run()


def test_negative_send_delay_raises():
    sim = Simulation()
    src = sim.add_module(Driver("src", setup=lambda m: m.send("x", 0, -1.0)))
    dst = sim.add_module(Driver("dst"))
    sim.connect(src, dst)
    with pytest.raises(SimulationError):
        sim.run()


def test_bad_port_raises():
    sim = Simulation()
    sim.add_module(Driver("src", setup=lambda m: m.send("x", 3)))
    with pytest.raises(SimulationError):
        sim.run()


def test_stop_ends_run():
    def setup(mod):
        for t in (1.0, 2.0, 3.0):
            mod.schedule_at(t, t)

    def react(mod, msg, is_self):
        if msg == 2.0:
            mod.sim.stop()

    sim = Simulation()
    drv = sim.add_module(Driver("d", setup=setup, react=react))
    sim.run()
    assert [m for _, m, _ in drv.log] == [1.0, 2.0]


def test_run_until_keeps_later_events():
    def setup(mod):
        mod.schedule_at(1.0, "a")
        mod.schedule_at(5.0, "b")

    sim = Simulation()
    drv = sim.add_module(Driver("d", setup=setup))
    sim.run(until=2.0)
    assert [m for _, m, _ in drv.log] == ["a"]
    sim.run()
    assert [m for _, m, _ in drv.log] == ["a", "b"]


def test_module_lookup():
    sim = Simulation()
    mds = sim.add_module(Driver("mds"))
    other = sim.add_module(Driver("cn", 0))
    assert other.sibling("mds") is mds
    with pytest.raises(SimulationError):
        sim.module("missing")


def test_duplicate_module_raises():
    sim = Simulation()
    sim.add_module(Driver("cn", 1))
    with pytest.raises(SimulationError):
        sim.add_module(Driver("cn", 1))


def test_unattached_module_has_no_time():
    lonely = Module("lonely")
    with pytest.raises(SimulationError):
        _ = lonely.now
    sim = Simulation()
    sim.add_module(lonely)
    assert lonely.now == 0.0


def test_base_module_rejects_messages():
    sim = Simulation()
    plain = sim.add_module(Module("plain"))
    sim.add_module(Driver("d", setup=lambda m: plain.schedule_at(0.0, "x")))
    with pytest.raises(SimulationError):
        sim.run()


def test_intuniform_range_and_seed():
    def draws(seed):
        sim = Simulation(seed=seed)
        mod = sim.add_module(Driver("d"))
        return [mod.intuniform(2, 5) for _ in range(50)]

    first = draws(7)
    assert first == draws(7)
    assert all(2 <= v <= 5 for v in first)


def test_intuniform_bad_range_raises():
    sim = Simulation()
    mod = sim.add_module(Driver("d"))
    with pytest.raises(SimulationError):
        mod.intuniform(3, 2)


def test_uniform_within_bounds():
    sim = Simulation(seed=1)
    mod = sim.add_module(Driver("d"))
    values = [mod.uniform(0.0, 1.0) for _ in range(100)]
    assert all(0.0 <= v <= 1.0 for v in values)


def test_signal_values():
    def setup(mod):
        mod.emit("queueLen", 3)
        mod.emit("queueLen", 1)

    sim = Simulation()
    sim.add_module(Driver("sw", 2, setup=setup))
    sim.run()
    assert sim.signal_values("sw[2]", "queueLen") == [3, 1]
    assert sim.signal_values("sw[2]", "other") == []


def test_plain_channel_finish_time_is_now():
    channel = Channel(delay=0.1)
    assert channel.is_transmission is False
    assert channel.transmission_finish_time(4.0) == 4.0


def test_channel_rejects_bad_arguments():
    with pytest.raises(ValueError):
        Channel(datarate=0)
    with pytest.raises(ValueError):
        Channel(delay=-1.0)