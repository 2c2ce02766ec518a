import logging
import threading
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from .config import STRATEGIES, BalancerConfig
from .hashing import FNV_SPEC, KETAMA_SPEC, FnvHashStrategy, HashStrategy, KetamaHashStrategy
from .models import Invocation, Server, VirtualNodeSpec
from .ring import Ring, build_ring

log = logging.getLogger("balancer")


def fingerprint(servers: Iterable[Server]) -> Tuple[str, ...]:
    return tuple(sorted({s.url for s in servers}))


class RingCache:
    """Small LRU of built rings keyed by the server-list fingerprint."""

    def __init__(self, max_entries: int = 32):
        self.max_entries = max(1, max_entries)
        self._rings: "OrderedDict[Tuple[str, ...], Ring]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._rings)

    def get_or_build(self, servers: List[Server], strategy: HashStrategy) -> Ring:
        key = fingerprint(servers)
        with self._lock:
            ring = self._rings.get(key)
            if ring is not None:
                self._rings.move_to_end(key)
                self.hits += 1
                return ring
            self.misses += 1

        # build outside the lock; a concurrent miss just builds the same ring twice
        ring = build_ring(servers, strategy)
        with self._lock:
            self._rings[key] = ring
            self._rings.move_to_end(key)
            while len(self._rings) > self.max_entries:
                self._rings.popitem(last=False)
        return ring

    def clear(self) -> None:
        with self._lock:
            self._rings.clear()


class LoadBalancer:
    def __init__(self, strategy: HashStrategy, cache: Optional[RingCache] = None):
        self.strategy = strategy
        self.cache = cache

    def ring_for(self, servers: Iterable[Server]) -> Ring:
        servers = list(servers)
        if self.cache is not None:
            return self.cache.get_or_build(servers, self.strategy)
        return build_ring(servers, self.strategy)

    def select(self, servers: Iterable[Server], invocation: Invocation) -> Server:
        position = self.strategy.position_for(invocation.hash_key)
        server = self.ring_for(servers).locate(position)
        log.debug("key=%r position=%d -> %s", invocation.hash_key, position, server.url)
        return server

    # Owner first, then the next distinct servers clockwise.
    def select_many(self, servers: Iterable[Server], invocation: Invocation, count: int) -> List[Server]:
        position = self.strategy.position_for(invocation.hash_key)
        return self.ring_for(servers).successors(position, count)

    def __repr__(self) -> str:
        return f"LoadBalancer({self.strategy!r}, cached={self.cache is not None})"


def consistent_hash_balancer(
    spec: VirtualNodeSpec = FNV_SPEC, cache: Optional[RingCache] = None
) -> LoadBalancer:
    return LoadBalancer(FnvHashStrategy(spec), cache=cache)


def ketama_balancer(
    spec: VirtualNodeSpec = KETAMA_SPEC, digest_name: str = "md5", cache: Optional[RingCache] = None
) -> LoadBalancer:
    return LoadBalancer(KetamaHashStrategy(spec, digest_name=digest_name), cache=cache)


def balancer_for(name: str, cfg: Optional[BalancerConfig] = None) -> LoadBalancer:
    cfg = cfg or BalancerConfig()
    cache = RingCache(cfg.ring_cache_size) if cfg.cache_rings else None
    if name == "fnv":
        return consistent_hash_balancer(VirtualNodeSpec(cfg.fnv_virtual_nodes, cfg.fnv_separator), cache=cache)
    if name == "ketama":
        return ketama_balancer(
            VirtualNodeSpec(cfg.ketama_virtual_nodes, cfg.ketama_separator),
            digest_name=cfg.digest_name,
            cache=cache,
        )
    raise ValueError(f"unknown strategy {name!r}, expected one of {', '.join(STRATEGIES)}")


def build_balancers(cfg: BalancerConfig) -> Dict[str, LoadBalancer]:
    return {name: balancer_for(name, cfg) for name in STRATEGIES}
