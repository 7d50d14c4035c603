"""Core data types for the timetravel versioned map.

A map's history is a chain of immutable Snapshot nodes. Each node records
only the keys it changed relative to its parent, as Slot entries.
All types are frozen dataclasses so nothing can be rewritten after creation.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Hashable, Mapping, Optional, Union


# ============================================================
# Slot - per-key entry of a delta
# ============================================================

@dataclass(frozen=True)
class Present:
    """Key holds this value as of the snapshot carrying the entry.

    The tombstone is not a storable value; use remove() instead.
    """
    value: Any

    def __post_init__(self):
        if isinstance(self.value, Removed):
            raise TypeError("REMOVED cannot be stored as a value")


@dataclass(frozen=True)
class Removed:
    """Tombstone: key was explicitly deleted as of this snapshot.

    A key missing from a delta means "inherit from parent"; a Removed
    entry means "deleted here". The two must never be conflated.
    """

    def __repr__(self) -> str:
        return "REMOVED"


REMOVED = Removed()

Slot = Union[Present, Removed]


# ============================================================
# Errors
# ============================================================

class KeyNotFound(KeyError):
    """Key appears in no delta reachable from the handle.

    Raised only for keys that were never inserted in any ancestor.
    A removed key resolves to the REMOVED tombstone instead.
    """

    def __init__(self, key: Hashable):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"key not found in any snapshot: {self.key!r}"


# ============================================================
# Snapshot - one immutable version node
# ============================================================

@dataclass(frozen=True, eq=False)
class Snapshot:
    """One version of the map.

    delta holds the keys changed relative to parent (read-only view).
    parent is None only for a root. Children reference parents, never
    the reverse, so ownership is acyclic and plain reference counting
    reclaims unreachable history. Equality and hashing are by identity.
    """
    delta: Mapping[Hashable, Slot]
    parent: Optional["Snapshot"] = None
    depth: int = 0  # number of ancestors; 0 for a root
    complete: bool = False  # delta lists every active key

    @classmethod
    def root(cls, entries: Mapping[Hashable, Any]) -> "Snapshot":
        """Build a root whose delta is every entry wrapped as Present."""
        delta = {key: Present(value) for key, value in entries.items()}
        return cls(delta=MappingProxyType(delta), complete=True)

    def child(self, delta: Mapping[Hashable, Slot],
              complete: bool = False) -> "Snapshot":
        """Layer a new snapshot on top of this one.

        complete marks a delta holding the full active state, so key
        enumeration can stop there instead of walking to the root.
        """
        return Snapshot(
            delta=MappingProxyType(dict(delta)),
            parent=self,
            depth=self.depth + 1,
            complete=complete,
        )

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def __repr__(self) -> str:
        return f"Snapshot(depth={self.depth}, delta_keys={len(self.delta)})"
