from dataclasses import dataclass


# Equality and hashing go by url only, so two handles for the same
# address are interchangeable on the ring.
@dataclass(frozen=True)
class Server:
    url: str

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class Invocation:
    hash_key: str


@dataclass(frozen=True)
class VirtualNodeSpec:
    count: int
    separator: str
