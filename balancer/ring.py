import logging
from bisect import bisect_left
from typing import Dict, Iterable, Iterator, List, Tuple

from .errors import NoAvailableServer
from .hashing import HashStrategy
from .models import Server

log = logging.getLogger("ring")


# Immutable once built; safe to share between threads.
class Ring:
    def __init__(self, owners: Dict[int, Server]):
        self._owners: Dict[int, Server] = dict(owners)
        self._positions: List[int] = sorted(self._owners)

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[Tuple[int, Server]]:
        for p in self._positions:
            yield p, self._owners[p]

    @property
    def positions(self) -> List[int]:
        return list(self._positions)

    @property
    def servers(self) -> List[Server]:
        return sorted(set(self._owners.values()), key=lambda s: s.url)

    def owner_at(self, position: int) -> Server:
        return self._owners[position]

    def entries_for(self, server: Server) -> List[int]:
        return [p for p in self._positions if self._owners[p] == server]

    def _ceiling_index(self, position: int) -> int:
        if not self._positions:
            raise NoAvailableServer()
        idx = bisect_left(self._positions, position)
        # past the last key: wrap to the first one
        if idx == len(self._positions):
            idx = 0
        return idx

    def locate(self, position: int) -> Server:
        return self._owners[self._positions[self._ceiling_index(position)]]

    # Up to `count` distinct servers clockwise from the owner of `position`.
    def successors(self, position: int, count: int) -> List[Server]:
        idx = self._ceiling_index(position)
        count = max(1, count)

        seen = set()
        out: List[Server] = []
        for step in range(len(self._positions)):
            server = self._owners[self._positions[(idx + step) % len(self._positions)]]
            if server not in seen:
                seen.add(server)
                out.append(server)
                if len(out) >= count:
                    break
        return out


def build_ring(servers: Iterable[Server], strategy: HashStrategy) -> Ring:
    """
    Expand every server into its virtual positions and map them onto the ring.

    Servers are visited in identifier order, so when two virtual positions
    collide the later identifier wins regardless of the order the caller
    passed them in. Duplicate identifiers simply overwrite their own entries.
    """
    owners: Dict[int, Server] = {}
    ordered = sorted(servers, key=lambda s: s.url)
    for server in ordered:
        for i in range(strategy.index_count):
            for position in strategy.positions_for(server.url, i):
                owners[position] = server

    expected = len({s.url for s in ordered}) * strategy.spec.count
    if len(owners) < expected:
        log.debug("ring has %d entries, %d virtual positions collided", len(owners), expected - len(owners))
    return Ring(owners)
