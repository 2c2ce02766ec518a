from typing import List

import pytest

from balancer.errors import NoAvailableServer
from balancer.hashing import FnvHashStrategy, KetamaHashStrategy
from balancer.models import Server, VirtualNodeSpec
from balancer.ring import Ring, build_ring

SERVERS = [Server("10.0.0.1:80"), Server("10.0.0.2:80"), Server("10.0.0.3:80")]


class CollidingStrategy:
    """Every server lands on position 0 for index 0; other indices are unique."""

    def __init__(self, count: int = 4):
        self.spec = VirtualNodeSpec(count, "#")

    @property
    def index_count(self) -> int:
        return self.spec.count

    def positions_for(self, identifier: str, index: int) -> List[int]:
        if index == 0:
            return [0]
        return [index * 1000 + sum(identifier.encode("utf-8"))]

    def position_for(self, key: str) -> int:
        return int(key)


@pytest.mark.parametrize("strategy", [FnvHashStrategy(), KetamaHashStrategy()])
def test_coverage_and_bounded_multiplicity(strategy):
    ring = build_ring(SERVERS, strategy)

    assert len(ring) == len(SERVERS) * strategy.spec.count
    for s in SERVERS:
        assert 1 <= len(ring.entries_for(s)) <= strategy.spec.count
    assert ring.servers == SERVERS


@pytest.mark.parametrize("strategy", [FnvHashStrategy(), KetamaHashStrategy()])
def test_build_is_order_independent(strategy):
    a = build_ring(SERVERS, strategy)
    b = build_ring(list(reversed(SERVERS)), strategy)
    assert list(a) == list(b)


def test_duplicates_overwrite_their_own_entries():
    strategy = FnvHashStrategy()
    a = build_ring(SERVERS + [Server("10.0.0.1:80")], strategy)
    b = build_ring(SERVERS, strategy)
    assert list(a) == list(b)


def test_locate_exact_and_successor():
    ring = build_ring(SERVERS, FnvHashStrategy())
    positions = ring.positions

    for p in positions:
        assert ring.locate(p) == ring.owner_at(p)

    # between two keys -> the upper one
    lo, hi = positions[0], positions[1]
    if hi - lo > 1:
        assert ring.locate(lo + 1) == ring.owner_at(hi)


def test_locate_wraps_around():
    ring = build_ring(SERVERS, KetamaHashStrategy())
    first = ring.positions[0]

    assert ring.locate(2 ** 32) == ring.owner_at(first)
    assert ring.locate(ring.positions[-1] + 1) == ring.owner_at(first)
    assert ring.locate(0) == ring.owner_at(first)


def test_empty_ring():
    ring = build_ring([], FnvHashStrategy())
    assert len(ring) == 0
    with pytest.raises(NoAvailableServer):
        ring.locate(123)
    with pytest.raises(NoAvailableServer):
        ring.successors(123, 2)


def test_collision_last_write_wins_deterministically():
    strategy = CollidingStrategy()
    a = build_ring(SERVERS, strategy)
    b = build_ring([SERVERS[2], SERVERS[0], SERVERS[1]], strategy)

    assert list(a) == list(b)
    # three servers competed for position 0, two entries lost
    assert len(a) == len(SERVERS) * strategy.spec.count - 2
    # the last server in identifier order holds the collided slot
    assert a.owner_at(0) == Server("10.0.0.3:80")
    assert a.locate(0) == Server("10.0.0.3:80")

    for s in SERVERS:
        assert len(a.entries_for(s)) >= strategy.spec.count - 1


def test_successors_distinct_and_start_at_owner():
    ring = build_ring(SERVERS, KetamaHashStrategy())
    pos = KetamaHashStrategy().position_for("user:42")

    two = ring.successors(pos, 2)
    assert len(two) == 2
    assert len(set(two)) == 2
    assert two[0] == ring.locate(pos)

    everything = ring.successors(pos, 10)
    assert sorted(everything, key=lambda s: s.url) == SERVERS


def test_ring_from_mapping():
    ring = Ring({30: SERVERS[0], 10: SERVERS[1], 20: SERVERS[2]})
    assert ring.positions == [10, 20, 30]
    assert ring.locate(11) == SERVERS[2]
    assert ring.locate(31) == SERVERS[1]
