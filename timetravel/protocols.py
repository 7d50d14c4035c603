"""Versioned map protocol definitions as Python Abstract Base Classes.

Three layers:
    1. Snapshotable - a handle on one immutable snapshot, with rollback
    2. Graphable    - history/DAG traversal over snapshot ancestry
    3. Compactable  - trade history depth for lookup speed

Every operation is a pure function of the handle and its arguments:
methods never mutate the receiver and return new handles instead.
"""

from abc import ABC, abstractmethod
from collections.abc import ItemsView
from typing import Any, Hashable, List, Optional

from timetravel.types import Slot, Snapshot


# ============================================================
# Layer 1: Snapshotable (fundamental)
# ============================================================

class Snapshotable(ABC):
    """Handle on a single immutable snapshot (its tip)."""

    @property
    @abstractmethod
    def tip(self) -> Snapshot:
        """The snapshot this handle points at."""
        ...

    @abstractmethod
    def insert(self, key: Hashable, value: Any) -> "Snapshotable":
        """New handle with key set to value. Receiver is unchanged."""
        ...

    @abstractmethod
    def remove(self, key: Hashable) -> "Snapshotable":
        """New handle with a tombstone layered over key."""
        ...

    @abstractmethod
    def resolve(self, key: Hashable) -> Slot:
        """Nearest delta entry for key, walking tip to root.
        Raises KeyNotFound if no reachable delta mentions key."""
        ...

    @abstractmethod
    def lookup(self, key: Hashable) -> Any:
        """Value of key, or REMOVED if its nearest entry is a tombstone.
        Raises KeyNotFound if no reachable delta mentions key."""
        ...

    @abstractmethod
    def rollback(self) -> "Snapshotable":
        """Handle on the parent snapshot. Idempotent at the root."""
        ...

    @abstractmethod
    def active_keys(self) -> List[Hashable]:
        """Keys resolving to Present, in ascending order."""
        ...

    @abstractmethod
    def active_values(self) -> List[Any]:
        """Values for active_keys(), in the same order."""
        ...

    @abstractmethod
    def items(self) -> ItemsView:
        """Re-iterable view of (key, value) pairs for the active keys."""
        ...

    @property
    def is_root(self) -> bool:
        return self.tip.is_root

    def same_snapshot(self, other: "Snapshotable") -> bool:
        """True if both handles point at the same snapshot node."""
        return self.tip is other.tip

    def changes(self):
        """Read-only view of the tip's delta (key -> Slot)."""
        return self.tip.delta


# ============================================================
# Layer 2: Graphable (history/DAG traversal)
# ============================================================

class Graphable(ABC):
    """Ancestry and history over the snapshot DAG."""

    @property
    @abstractmethod
    def depth(self) -> int:
        """Number of ancestors of the tip. 0 at a root."""
        ...

    @abstractmethod
    def history(self, limit: Optional[int] = None) -> List["Graphable"]:
        """Handles from the tip to the root, newest first."""
        ...

    @abstractmethod
    def ancestors(self) -> List["Graphable"]:
        """Handles on every strict ancestor, nearest first."""
        ...

    @abstractmethod
    def is_ancestor(self, other: "Graphable") -> bool:
        """True if this handle's tip is a strict ancestor of other's."""
        ...

    @abstractmethod
    def common_ancestor(self, other: "Graphable") -> Optional["Graphable"]:
        """Nearest snapshot reachable from both, or None if disjoint."""
        ...


# ============================================================
# Layer 3: Compactable (history management)
# ============================================================

class Compactable(ABC):
    """Flatten the active state into a single snapshot."""

    @abstractmethod
    def compact(self) -> "Compactable":
        """Flatten onto a new tip whose parent is the current tip.
        History stays reachable through one rollback."""
        ...

    @abstractmethod
    def purge(self) -> "Compactable":
        """Flatten into a new root. Prior history is dropped."""
        ...
