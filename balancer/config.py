from dataclasses import dataclass, field
from typing import List

STRATEGIES = ("fnv", "ketama")


@dataclass
class BalancerConfig:
    servers: List[str] = field(default_factory=list)
    strategy: str = "ketama"
    debug: bool = False

    fnv_virtual_nodes: int = 10
    fnv_separator: str = "&&"
    ketama_virtual_nodes: int = 12
    ketama_separator: str = "-"
    digest_name: str = "md5"

    cache_rings: bool = False
    ring_cache_size: int = 32
