import random

import pytest

from serbus.bus_fabric import BusFabric
from serbus.config import BusConfig, SlaveConfig
from serbus.error import BusStalled, RequestTimeout
from serbus.transaction import Status, Transaction
from serbus.util.bits import address_bits, data_bits


@pytest.fixture
def fabric():
    with BusFabric(record=True) as f:
        yield f


def check_exclusive(history):
    for s in history:
        assert sum(s.grant) <= 1
        assert sum(s.msplit) <= 1
        if s.mvalid:
            assert s.owner is not None


def test_write_then_read(fabric):
    w = fabric.write(0, 0, 0x100, 0xAA)
    r = fabric.read(0, 0, 0x100)
    fabric.run_until_complete(w, r)
    assert w.status is Status.OK
    assert r.status is Status.OK
    assert r.result == 0xAA
    assert fabric.backends[0].read(0x100) == 0xAA
    assert w.originator == 0
    assert w.issued_at < w.completed_at <= r.issued_at < r.completed_at
    check_exclusive(fabric.history)


@pytest.mark.parametrize("device", range(BusConfig().num_slaves))
def test_write_then_read_each_device(fabric, device):
    top = len(fabric.backends[device]) - 1
    for offset, data in ((0x000, 0x3C), (top, 0xC3)):
        w = fabric.transfer(1, Transaction.write(device, offset, data))
        r = fabric.transfer(1, Transaction.read(device, offset))
        assert w.ok and r.ok
        assert r.result == data
        assert fabric.backends[device].read(offset) == data
    for other in range(fabric.config.num_slaves):
        if other != device:
            assert fabric.backends[other].dump() == bytes(len(fabric.backends[other]))
    assert any(s.msplit[1] for s in fabric.history) == fabric.address_map.split_capable(device)
    check_exclusive(fabric.history)


def test_tick_counter(fabric):
    assert fabric.tick == 0
    fabric.step(5)
    assert fabric.tick == 5
    assert len(fabric.history) == 5
    assert fabric.history[-1].tick == 5


def test_concurrent_masters(fabric):
    w0 = fabric.write(0, 0, 0x200, 0x55)
    w1 = fabric.write(1, 1, 0x100, 0x77)
    r0 = fabric.read(0, 0, 0x200)
    r1 = fabric.read(1, 1, 0x100)
    fabric.run_until_complete()
    assert all(t.ok for t in (w0, w1, r0, r1))
    assert r0.result == 0x55
    assert r1.result == 0x77
    assert fabric.backends[0].read(0x100) == 0
    assert fabric.backends[1].read(0x200) == 0
    # master 0 wins the first arbitration
    assert w0.completed_at < w1.completed_at
    assert any(s.grant == (1, 0) for s in fabric.history)
    assert any(s.grant == (0, 1) for s in fabric.history)
    check_exclusive(fabric.history)


def test_split_releases_bus(fabric):
    w0 = fabric.write(0, 2, 0x050, 0xBB)
    w1 = fabric.write(1, 0, 0x010, 0x11)
    fabric.run_until_complete()
    assert w0.ok and w1.ok
    assert fabric.backends[2].read(0x050) == 0xBB
    assert fabric.backends[0].read(0x010) == 0x11

    h = fabric.history
    split_ticks = [s.tick for s in h if s.msplit[0]]
    assert split_ticks
    # the unrelated write uses the bus while master 0 waits on the split slave
    assert any(s.grant == (0, 1) and s.msplit[0] for s in h)
    assert w1.completed_at < w0.completed_at
    assert sum(s.split_grant for s in h) == 1
    regrant = [s.tick for s in h if s.split_grant][0]
    assert regrant > max(split_ticks)
    assert h[regrant - 1].grant == (1, 0)
    check_exclusive(h)


def test_split_read_returns_data(fabric):
    fabric.backends[2].write(0x7FF, 0x3C)
    r = fabric.transfer(1, Transaction.read(2, 0x7FF))
    assert r.result == 0x3C
    assert any(s.msplit[1] for s in fabric.history)


def test_split_owner_keeps_slave(fabric):
    fabric.backends[2].load([0x10, 0x20], offset=0x100)
    r0 = fabric.read(0, 2, 0x100)
    r1 = fabric.read(1, 2, 0x101)
    fabric.run_until_complete()
    assert r0.result == 0x10
    assert r1.result == 0x20
    assert r0.completed_at < r1.completed_at
    h = fabric.history
    # master 1 is never granted while master 0 owns the split slave
    assert not any(s.msplit[0] and s.grant[1] for s in h)
    check_exclusive(h)


def test_wire_format(fabric):
    txn = fabric.transfer(0, Transaction.write(1, 0x5A3, 0xC6))
    assert txn.ok
    bits = [s.wdata for s in fabric.history if s.mvalid]
    addr = address_bits(fabric.address_map, 1, 0x5A3)
    assert len(bits) == len(addr) + 1 + 8
    assert bits[:len(addr)] == addr
    assert bits[-8:] == data_bits(0xC6)
    assert all(s.mode for s in fabric.history if s.mvalid)


def test_read_wire_format(fabric):
    fabric.backends[0].write(0x0F0, 0x96)
    fabric.transfer(0, Transaction.read(0, 0x0F0))
    on_bus = [s for s in fabric.history if s.mvalid]
    assert [s.wdata for s in on_bus][:15] == address_bits(fabric.address_map, 0, 0x0F0)
    assert not any(s.mode for s in on_bus)
    # answer tick, then the data bits on the read line
    assert [s.rdata for s in on_bus if s.svalid][1:] == data_bits(0x96)


def test_invalid_device_times_out():
    cfg = BusConfig(timeout=16)
    with BusFabric(cfg, record=True) as f:
        txn = f.write(0, 3, 0x123, 0xEE)
        f.run_until_complete(txn)
        assert txn.status is Status.TIMEOUT
        assert not txn.ok
        assert not any(s.ack for s in f.history)
        assert all(b.dump() == bytes(len(b)) for b in f.backends)
        with pytest.raises(RequestTimeout) as e:
            txn.raise_for_status()
        assert e.value.transaction is txn
        # the bus is usable again afterwards
        ok = f.transfer(0, Transaction.write(0, 0x123, 0xEE))
        assert ok.ok


def test_transfer_raises_on_timeout():
    with BusFabric(BusConfig(timeout=8)) as f:
        with pytest.raises(RequestTimeout):
            f.transfer(1, Transaction.read(3, 0))


def test_grant_timeout_while_split_owned():
    cfg = BusConfig(timeout=16)
    with BusFabric(cfg, record=True) as f:
        r0 = f.read(0, 2, 0x001)
        while not f.state().msplit[0]:
            f.step()
        r1 = f.read(1, 2, 0x002)
        f.run_until_complete()
        assert r1.status is Status.TIMEOUT
        assert r0.ok
        assert r1.completed_at < r0.completed_at


def test_submit_validates_arguments(fabric):
    with pytest.raises(ValueError):
        fabric.write(0, 0, 0x800, 1)
    with pytest.raises(ValueError):
        fabric.write(2, 0, 0, 1)
    with pytest.raises(ValueError):
        fabric.write(0, 16, 0, 1)
    with pytest.raises(ValueError):
        Transaction.write(0, 0, 0x100)


def test_reset_discards_transactions(fabric):
    txn = fabric.write(0, 1, 0x010, 0x42)
    queued = fabric.write(0, 1, 0x011, 0x43)
    fabric.step(10)
    assert fabric.state().mvalid
    fabric.reset()
    s = fabric.state()
    assert not s.mvalid
    assert s.grant == (0, 0)
    assert s.breq == (0, 0)
    assert fabric.idle()
    assert fabric.clients[0].discarded == [txn, queued]
    assert not txn.done
    assert fabric.backends[1].read(0x010) == 0

    after = fabric.transfer(0, Transaction.write(1, 0x010, 0x42))
    assert after.ok
    assert fabric.backends[1].read(0x010) == 0x42


def test_run_until_complete_stalls(fabric):
    txn = fabric.write(0, 0, 0, 1)
    with pytest.raises(BusStalled):
        fabric.run_until_complete(txn, max_ticks=5)


def test_slow_split_slave_keeps_bus_free():
    slaves = (SlaveConfig(8, name="fast"), SlaveConfig(8, True, 200, name="slow"))
    with BusFabric(BusConfig(slaves=slaves), record=True) as f:
        slow = f.read(0, 1, 0x10)
        fast = [f.write(1, 0, i, i) for i in range(4)]
        f.run_until_complete()
        assert slow.ok
        assert all(t.ok for t in fast)
        assert all(t.completed_at < slow.completed_at for t in fast)


@pytest.mark.parametrize("seed", range(2))
def test_random_traffic(seed):
    rng = random.Random(seed)
    cfg = BusConfig(num_masters=3, timeout=5000)
    with BusFabric(cfg, record=True) as f:
        expected = {}
        reads = []
        for m in range(cfg.num_masters):
            for _ in range(5):
                dev = rng.randrange(cfg.num_slaves)
                # each master owns its own slice of every slave
                off = (m << 8) | rng.randrange(256)
                data = rng.randrange(256)
                f.write(m, dev, off, data)
                expected[(dev, off)] = data
                reads.append((f.read(m, dev, off), data))
        f.run_until_complete(max_ticks=20000)
        for txn, data in reads:
            assert txn.ok
            assert txn.result == data
        for (dev, off), data in expected.items():
            assert f.backends[dev].read(off) == data
        check_exclusive(f.history)
