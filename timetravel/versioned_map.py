"""Persistent key/value map with time travel.

Every mutation returns a new handle on a new snapshot; the receiver and
all earlier handles stay valid and unchanged.
"""

import logging
from collections.abc import ItemsView, Mapping, ValuesView
from typing import Any, Dict, Hashable, Iterator, List, Optional

from timetravel.protocols import Snapshotable, Graphable, Compactable
from timetravel.types import (
    KeyNotFound, Present, Removed, REMOVED, Slot, Snapshot,
)

logger = logging.getLogger(__name__)


class _ActiveItems(ItemsView):
    """(key, value) view resolved in one walk per iteration."""

    def __iter__(self):
        active = self._mapping._active()
        for key in sorted(active):
            yield key, active[key]


class _ActiveValues(ValuesView):
    """Values view resolved in one walk per iteration."""

    def __iter__(self):
        active = self._mapping._active()
        for key in sorted(active):
            yield active[key]


class VersionedMap(Mapping, Snapshotable, Graphable, Compactable):
    """Handle on one snapshot of a versioned map.

    Also a read-only Mapping over the active keys: ``m[k]``, ``k in m``,
    ``len(m)`` and iteration all reflect the state as of the tip.
    Iteration order is ascending key order.
    """

    def __init__(self, snapshot: Snapshot):
        self._tip = snapshot

    @classmethod
    def from_mapping(cls, initial: Optional[Any] = None) -> "VersionedMap":
        return cls(Snapshot.root(dict(initial or {})))

    # -- walking --

    def _walk(self) -> Iterator[Snapshot]:
        node = self._tip
        while node is not None:
            yield node
            node = node.parent

    def _active(self) -> Dict[Hashable, Any]:
        """Active key -> value map, first delta entry per key wins."""
        resolved: Dict[Hashable, Slot] = {}
        for node in self._walk():
            for key, slot in node.delta.items():
                resolved.setdefault(key, slot)
            if node.complete:
                # keys below a complete delta that it does not list are inactive
                break
        return {key: slot.value for key, slot in resolved.items()
                if isinstance(slot, Present)}

    # -- Snapshotable --

    @property
    def tip(self) -> Snapshot:
        return self._tip

    def insert(self, key: Hashable, value: Any) -> "VersionedMap":
        return VersionedMap(self._tip.child({key: Present(value)}))

    def remove(self, key: Hashable) -> "VersionedMap":
        return VersionedMap(self._tip.child({key: REMOVED}))

    def resolve(self, key: Hashable) -> Slot:
        for node in self._walk():
            slot = node.delta.get(key)
            if slot is not None:
                return slot
        raise KeyNotFound(key)

    def lookup(self, key: Hashable) -> Any:
        slot = self.resolve(key)
        if isinstance(slot, Removed):
            return REMOVED
        return slot.value

    def rollback(self) -> "VersionedMap":
        parent = self._tip.parent
        if parent is None:
            return self
        return VersionedMap(parent)

    def active_keys(self) -> List[Hashable]:
        return sorted(self._active())

    def active_values(self) -> List[Any]:
        active = self._active()
        return [active[key] for key in sorted(active)]

    def items(self) -> ItemsView:
        return _ActiveItems(self)

    def values(self) -> ValuesView:
        return _ActiveValues(self)

    # -- Mapping --

    def __getitem__(self, key: Hashable) -> Any:
        slot = self.resolve(key)
        if isinstance(slot, Removed):
            raise KeyError(key)
        return slot.value

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.active_keys())

    def __len__(self) -> int:
        return len(self._active())

    def __repr__(self) -> str:
        return f"VersionedMap({dict(self.items())!r}, depth={self.depth})"

    # -- Graphable --

    @property
    def depth(self) -> int:
        return self._tip.depth

    def history(self, limit: Optional[int] = None) -> List["VersionedMap"]:
        handles = []
        for node in self._walk():
            if limit is not None and len(handles) >= limit:
                break
            handles.append(self if node is self._tip else VersionedMap(node))
        return handles

    def ancestors(self) -> List["VersionedMap"]:
        return self.history()[1:]

    def is_ancestor(self, other: "VersionedMap") -> bool:
        target = self._tip
        node = other.tip.parent
        while node is not None and node.depth >= target.depth:
            if node is target:
                return True
            node = node.parent
        return False

    def common_ancestor(self, other: "VersionedMap") -> Optional["VersionedMap"]:
        a, b = self._tip, other.tip
        while a is not None and b is not None and a is not b:
            if a.depth >= b.depth:
                a = a.parent
            else:
                b = b.parent
        if a is None or b is None:
            return None
        return VersionedMap(a)

    # -- Compactable --

    def compact(self) -> "VersionedMap":
        active = self._active()
        logger.debug("compacting %d active keys over depth %d",
                     len(active), self.depth)
        delta = {key: Present(value) for key, value in active.items()}
        return VersionedMap(self._tip.child(delta, complete=True))

    def purge(self) -> "VersionedMap":
        active = self._active()
        logger.debug("purging history of depth %d, keeping %d active keys",
                     self.depth, len(active))
        return VersionedMap(Snapshot.root(active))


def create(initial: Optional[Any] = None) -> VersionedMap:
    """Create a versioned map rooted at the given entries.

    Usage:
        m = create({"foo": 1})
        m2 = m.insert("bar", 2)
        m2.rollback().active_keys()  # ["foo"]
    """
    return VersionedMap.from_mapping(initial)
