"""timetravel - Persistent key/value map with time travel.

Every mutation yields a new immutable snapshot layered over its parent,
so earlier versions stay valid and can be rolled back to, compacted,
or purged.
"""

__version__ = "0.1.0"

from timetravel.protocols import (
    Snapshotable,
    Graphable,
    Compactable,
)
from timetravel.types import (
    Present, Removed, REMOVED, Slot, Snapshot, KeyNotFound,
)
from timetravel.versioned_map import VersionedMap, create
