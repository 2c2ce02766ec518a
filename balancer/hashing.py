import hashlib
import struct
from typing import List, Protocol

from .errors import HashingUnavailable
from .models import VirtualNodeSpec

MASK_32 = 0xFFFFFFFF
FNV_32_OFFSET = 0x811C9DC5
FNV_32_PRIME = 0x01000193

FNV_SPEC = VirtualNodeSpec(count=10, separator="&&")
KETAMA_SPEC = VirtualNodeSpec(count=12, separator="-")

# one 16-byte digest -> four little-endian uint32 words
_SEGMENTS = struct.Struct("<4I")


class HashStrategy(Protocol):
    """Maps server identifiers and request keys into the same 32-bit ring space."""

    spec: VirtualNodeSpec

    @property
    def index_count(self) -> int: ...

    def positions_for(self, identifier: str, index: int) -> List[int]: ...

    def position_for(self, key: str) -> int: ...


def fnv1_32(data: bytes) -> int:
    # Plain 32-bit FNV-1 (multiply, then xor).
    h = FNV_32_OFFSET
    for b in data:
        h = ((h * FNV_32_PRIME) & MASK_32) ^ b
    return h


def _avalanche(h: int) -> int:
    h = (h + (h << 13)) & MASK_32
    h ^= h >> 7
    h = (h + (h << 3)) & MASK_32
    h ^= h >> 17
    h = (h + (h << 5)) & MASK_32
    return h


def fnv_position(s: str) -> int:
    return _avalanche(fnv1_32(s.encode("utf-8")))


def digest_segments(digest: bytes) -> List[int]:
    """Split the first 16 bytes of a digest into four little-endian uint32 values."""
    return list(_SEGMENTS.unpack_from(digest, 0))


class FnvHashStrategy:
    def __init__(self, spec: VirtualNodeSpec = FNV_SPEC):
        if spec.count < 1:
            raise ValueError(f"virtual node count must be positive, got {spec.count}")
        self.spec = spec

    @property
    def index_count(self) -> int:
        return self.spec.count

    def positions_for(self, identifier: str, index: int) -> List[int]:
        return [fnv_position(f"{identifier}{self.spec.separator}{index}")]

    def position_for(self, key: str) -> int:
        return fnv_position(key)

    def __repr__(self) -> str:
        return f"FnvHashStrategy(count={self.spec.count}, separator={self.spec.separator!r})"


class KetamaHashStrategy:
    """
    Digest-segmented strategy. Every digest of `identifier + separator + group`
    yields four ring positions, so the virtual node count has to be a multiple
    of 4. A request key only needs one position: the first segment of its digest.
    """

    def __init__(self, spec: VirtualNodeSpec = KETAMA_SPEC, digest_name: str = "md5"):
        if spec.count < 4 or spec.count % 4 != 0:
            raise ValueError(f"virtual node count must be a positive multiple of 4, got {spec.count}")
        self.spec = spec
        self.digest_name = digest_name
        try:
            self._prototype = hashlib.new(digest_name)
        except ValueError as e:
            raise HashingUnavailable(f"{digest_name} not supported") from e
        if self._prototype.digest_size < _SEGMENTS.size:
            raise HashingUnavailable(
                f"{digest_name} digest is {self._prototype.digest_size} bytes, need at least {_SEGMENTS.size}"
            )

    @property
    def index_count(self) -> int:
        return self.spec.count // 4

    def _digest(self, s: str) -> bytes:
        # clone per call; the prototype itself is never updated
        h = self._prototype.copy()
        h.update(s.encode("utf-8"))
        return h.digest()

    def positions_for(self, identifier: str, index: int) -> List[int]:
        return digest_segments(self._digest(f"{identifier}{self.spec.separator}{index}"))

    def position_for(self, key: str) -> int:
        return digest_segments(self._digest(key))[0]

    def __repr__(self) -> str:
        return f"KetamaHashStrategy(count={self.spec.count}, separator={self.spec.separator!r}, digest={self.digest_name})"
