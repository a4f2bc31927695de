"""
Explicit cache states for a principal's roles and permissions.
"""
from dataclasses import dataclass
from typing import Generic, TypeVar


T = TypeVar("T")


class Unloaded:
    """Nothing has been read from storage yet (or it was invalidated)."""

    _instance: "Unloaded | None" = None

    def __new__(cls) -> "Unloaded":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNLOADED"


UNLOADED = Unloaded()


@dataclass(frozen=True)
class Loaded(Generic[T]):
    """Items read from storage, in storage order."""

    items: tuple[T, ...]

