import pytest

from fattree_sim.kernel import Module, Simulation, SimulationError
from fattree_sim.ost import OST
from fattree_sim.request import Request

MIB = 1024 * 1024
READ_LATENCY = 0.5
WRITE_LATENCY = 0.25


class _Recorder(Module):
    def __init__(self, name, index=None):
        super().__init__(name, index)
        self.received = []

    def handle_message(self, msg, is_self):
        self.received.append((self.now, msg))


def _build(proc_num=1):
    sim = Simulation(seed=3)
    ost = sim.add_module(
        OST("ost", 0, proc_num=proc_num, read_latency=READ_LATENCY, write_latency=WRITE_LATENCY)
    )
    oss = sim.add_module(_Recorder("oss", 0))
    sim.connect(ost, oss)
    sim.run()
    return sim, ost, oss


def test_read_request_is_served_and_returned():
    sim, ost, oss = _build()
    req = Request(work_type="r", data_size=MIB)
    ost.handle_message(req, False)
    assert req.byte_length == MIB
    assert req.finished
    assert req.leave_time == pytest.approx(READ_LATENCY)
    assert req.proc_time == pytest.approx(READ_LATENCY)
    assert ost.data_size_in_queue() == MIB
    sim.run()
    assert len(oss.received) == 1
    time, delivered = oss.received[0]
    assert time == pytest.approx(READ_LATENCY)
    assert delivered.data_size == MIB
    assert ost.data_size_in_queue() == 0
    assert sim.signal_values("ost[0]", "stayTime") == [pytest.approx(READ_LATENCY)]
    assert sim.signal_values("ost[0]", "waitingTime") == [pytest.approx(0.0)]


def test_write_request_has_no_payload_back():
    sim, ost, _ = _build()
    req = Request(work_type="w", data_size=MIB)
    ost.handle_message(req, False)
    assert req.byte_length == 0
    assert req.leave_time == pytest.approx(WRITE_LATENCY)


def test_full_buffer_queues_behind_last_request():
    sim, ost, oss = _build(proc_num=1)
    first = Request(work_type="r", data_size=MIB)
    second = Request(work_type="r", data_size=MIB)
    ost.handle_message(first, False)
    ost.handle_message(second, False)
    assert second.leave_time - first.leave_time == pytest.approx(READ_LATENCY)
    assert sim.signal_values("ost[0]", "queueLen") == [0, 1]
    sim.run()
    times = [time for time, _ in oss.received]
    assert times == sorted(times)
    assert len(times) == 2


def test_free_slots_serve_in_parallel():
    _, ost, _ = _build(proc_num=2)
    first = Request(work_type="r", data_size=MIB)
    second = Request(work_type="r", data_size=MIB)
    ost.handle_message(first, False)
    ost.handle_message(second, False)
    assert first.leave_time == pytest.approx(second.leave_time)


def test_unknown_work_type_raises():
    _, ost, _ = _build()
    with pytest.raises(SimulationError):
        ost.handle_message(Request(work_type="x", data_size=MIB), False)


def test_data_size_in_queue_sums_requests():
    _, ost, _ = _build(proc_num=4)
    ost.handle_message(Request(work_type="r", data_size=MIB), False)
    ost.handle_message(Request(work_type="w", data_size=2 * MIB), False)
    assert ost.data_size_in_queue() == 3 * MIB