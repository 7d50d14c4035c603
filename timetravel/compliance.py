"""Protocol-agnostic compliance test suite for versioned map implementations.

Implementations provide a fixture dict:

    fixture = {
        "create_map": lambda initial: ...,   # root handle holding initial entries
        "close": lambda m: ...,              # cleanup (may be a no-op)
    }

Handles returned by "create_map" must implement the Snapshotable and
Compactable protocols, and may implement Graphable.

Usage with pytest:

    from timetravel.compliance import run_compliance_tests

    def test_compliance(map_fixture):
        run_compliance_tests(map_fixture)
"""

from typing import Dict, Any

from timetravel.protocols import Graphable
from timetravel.types import KeyNotFound, REMOVED


# ============================================================
# Helpers
# ============================================================

def _state(m) -> Dict[Any, Any]:
    """Active contents of a handle as a plain dict."""
    return dict(zip(m.active_keys(), m.active_values()))


def _is_graphable(fix: Dict[str, Any]) -> bool:
    m = fix["create_map"]({})
    try:
        return isinstance(m, Graphable)
    finally:
        fix["close"](m)


# ============================================================
# Core operations
# ============================================================

def test_construct(fix: Dict[str, Any]) -> None:
    """Root handle exposes the initial entries and nothing else."""
    m = fix["create_map"]({"foo": 1, "bar": 2})
    try:
        assert m.active_keys() == ["bar", "foo"]
        assert m.lookup("foo") == 1
        assert m.lookup("bar") == 2
    finally:
        fix["close"](m)


def test_insert_then_lookup(fix: Dict[str, Any]) -> None:
    """lookup(insert(h, k, v), k) == v."""
    m = fix["create_map"]({"foo": 1})
    try:
        assert m.insert("bar", 2).lookup("bar") == 2
        assert m.insert("foo", 9).lookup("foo") == 9
        assert m.insert("none", None).lookup("none") is None, \
            "None is an ordinary value, not a tombstone"
    finally:
        fix["close"](m)


def test_shadowing(fix: Dict[str, Any]) -> None:
    """Most recent insert of a key wins."""
    m = fix["create_map"]({})
    try:
        m2 = m.insert("k", "v1").insert("k", "v2")
        assert m2.lookup("k") == "v2"
        assert m2.active_keys() == ["k"], "Shadowed key listed once"
    finally:
        fix["close"](m)


def test_lookup_missing_raises(fix: Dict[str, Any]) -> None:
    """Key never inserted anywhere in the chain raises KeyNotFound."""
    m = fix["create_map"]({"foo": 1})
    try:
        m2 = m.insert("bar", 2).remove("bar")
        try:
            m2.lookup("never")
        except KeyNotFound as e:
            assert e.key == "never"
        else:
            raise AssertionError("lookup of unknown key should raise KeyNotFound")
    finally:
        fix["close"](m)


def test_removal_visibility(fix: Dict[str, Any]) -> None:
    """Removed key leaves activeKeys and resolves to the tombstone."""
    m = fix["create_map"]({"foo": 1, "bar": 2})
    try:
        assert "foo" in m.active_keys()
        m2 = m.remove("foo")
        assert "foo" not in m2.active_keys()
        assert m2.lookup("foo") is REMOVED, \
            "Removed key should signal absence, not raise"
    finally:
        fix["close"](m)


def test_remove_unknown_key(fix: Dict[str, Any]) -> None:
    """Removing a never-seen key is total and leaves state unchanged."""
    m = fix["create_map"]({"foo": 1})
    try:
        m2 = m.remove("ghost")
        assert _state(m2) == {"foo": 1}
        assert m2.lookup("ghost") is REMOVED
    finally:
        fix["close"](m)


def test_reinsert_after_remove(fix: Dict[str, Any]) -> None:
    """Insert after a tombstone makes the key active again."""
    m = fix["create_map"]({"foo": 1})
    try:
        m2 = m.remove("foo").insert("foo", 3)
        assert m2.lookup("foo") == 3
        assert m2.active_keys() == ["foo"]
    finally:
        fix["close"](m)


# ============================================================
# Rollback
# ============================================================

def test_rollback_inverts_insert(fix: Dict[str, Any]) -> None:
    """rollback(insert(h, k, v)) has the same state as h."""
    m = fix["create_map"]({"foo": 1, "bar": 2})
    try:
        assert _state(m.insert("baz", 3).rollback()) == _state(m)
        assert _state(m.insert("foo", 7).rollback()) == _state(m)
    finally:
        fix["close"](m)


def test_rollback_recovers_removed(fix: Dict[str, Any]) -> None:
    """Rolling back past a tombstone reveals the prior value."""
    m = fix["create_map"]({"foo": 1})
    try:
        m2 = m.insert("foo", 5)
        assert m2.remove("foo").rollback().lookup("foo") == 5
    finally:
        fix["close"](m)


def test_rollback_at_root_idempotent(fix: Dict[str, Any]) -> None:
    """Rollback at the root returns the root again."""
    m = fix["create_map"]({"foo": 1})
    try:
        r1 = m.rollback()
        r2 = r1.rollback().rollback()
        assert r1.same_snapshot(m)
        assert r2.same_snapshot(m)
        assert _state(r2) == {"foo": 1}
    finally:
        fix["close"](m)


def test_rollback_scenario(fix: Dict[str, Any]) -> None:
    """insert, remove, then two rollbacks walk the state back."""
    m = fix["create_map"]({"foo": 1})
    try:
        m = m.insert("bar", 2)
        assert _state(m) == {"bar": 2, "foo": 1}
        m = m.remove("foo")
        assert _state(m) == {"bar": 2}
        m = m.rollback()
        assert _state(m) == {"bar": 2, "foo": 1}
        m = m.rollback()
        assert _state(m) == {"foo": 1}
    finally:
        fix["close"](m)


# ============================================================
# Immutability and branching
# ============================================================

def test_immutability(fix: Dict[str, Any]) -> None:
    """A handle's state never changes after further operations."""
    m = fix["create_map"]({"foo": 1, "bar": 2})
    try:
        before = _state(m)
        m.insert("foo", 100)
        m.remove("bar")
        m.compact().insert("x", 1)
        m.purge().remove("foo")
        assert _state(m) == before
        assert m.lookup("foo") == 1
    finally:
        fix["close"](m)


def test_branch_isolation(fix: Dict[str, Any]) -> None:
    """Sibling branches from one ancestor don't see each other."""
    m = fix["create_map"]({"shared": 0})
    try:
        left = m.insert("left", 1)
        right = m.insert("right", 2)
        assert left.active_keys() == ["left", "shared"]
        assert right.active_keys() == ["right", "shared"]
        try:
            left.lookup("right")
        except KeyNotFound:
            pass
        else:
            raise AssertionError("left branch should not see right's key")
    finally:
        fix["close"](m)


# ============================================================
# Enumeration
# ============================================================

def test_active_keys_sorted(fix: Dict[str, Any]) -> None:
    """activeKeys is ascending, not insertion order."""
    m = fix["create_map"]({"m": 1})
    try:
        m2 = m.insert("z", 2).insert("a", 3).insert("q", 4)
        assert m2.active_keys() == ["a", "m", "q", "z"]
        assert m2.active_values() == [3, 1, 4, 2]
    finally:
        fix["close"](m)


def test_items_restartable(fix: Dict[str, Any]) -> None:
    """items pairs keys with values and can be re-run."""
    m = fix["create_map"]({"b": 2, "a": 1})
    try:
        m2 = m.remove("b").insert("c", 3)
        first = list(m2.items())
        second = list(m2.items())
        assert first == [("a", 1), ("c", 3)]
        assert first == second
        assert first == list(zip(m2.active_keys(), m2.active_values()))
    finally:
        fix["close"](m)


# ============================================================
# History management
# ============================================================

def test_compact_preserves_state(fix: Dict[str, Any]) -> None:
    """compact keeps keys, values and lookups, including tombstones."""
    m = fix["create_map"]({"foo": 1})
    try:
        m = m.insert("bar", 2).insert("baz", 3).remove("foo").insert("bar", 4)
        c = m.compact()
        assert _state(c) == _state(m)
        for key in ("foo", "bar", "baz"):
            assert c.lookup(key) == m.lookup(key), \
                f"lookup({key!r}) should survive compaction"
    finally:
        fix["close"](m)


def test_compact_keeps_one_level(fix: Dict[str, Any]) -> None:
    """rollback(compact(h)) lands on h."""
    m = fix["create_map"]({"foo": 1})
    try:
        m = m.insert("bar", 2).remove("foo")
        back = m.compact().rollback()
        assert back.same_snapshot(m)
        assert _state(back.rollback()) == {"bar": 2, "foo": 1}
    finally:
        fix["close"](m)


def test_compact_then_mutate(fix: Dict[str, Any]) -> None:
    """Mutations over a compacted tip resolve normally."""
    m = fix["create_map"]({"foo": 1, "bar": 2})
    try:
        c = m.remove("bar").compact().insert("baz", 3).remove("foo")
        assert _state(c) == {"baz": 3}
        assert c.rollback().rollback().lookup("bar") is REMOVED
    finally:
        fix["close"](m)


def test_purge_erases_history(fix: Dict[str, Any]) -> None:
    """purge keeps state but rollback from it is a no-op."""
    m = fix["create_map"]({"foo": 1})
    try:
        m = m.insert("bar", 2).remove("foo")
        p = m.purge()
        assert _state(p) == _state(m)
        assert p.rollback().same_snapshot(p)
        try:
            p.lookup("foo")
        except KeyNotFound:
            pass
        else:
            raise AssertionError("purged tombstones should not survive")
    finally:
        fix["close"](m)


# ============================================================
# Graphable
# ============================================================

def test_depth_and_history(fix: Dict[str, Any]) -> None:
    """history lists handles newest first, ending at the root."""
    if not _is_graphable(fix):
        return
    m = fix["create_map"]({"foo": 1})
    try:
        m3 = m.insert("a", 1).insert("b", 2).insert("c", 3)
        assert m.depth == 0
        assert m3.depth == 3
        hist = m3.history()
        assert len(hist) == 4
        assert hist[0].same_snapshot(m3)
        assert hist[-1].same_snapshot(m)
        assert len(m3.history(limit=2)) == 2
    finally:
        fix["close"](m)


def test_ancestry(fix: Dict[str, Any]) -> None:
    """is_ancestor and common_ancestor follow parent links."""
    if not _is_graphable(fix):
        return
    m = fix["create_map"]({"foo": 1})
    try:
        base = m.insert("base", 0)
        left = base.insert("left", 1)
        right = base.insert("right", 2).insert("more", 3)
        assert base.is_ancestor(left) is True
        assert left.is_ancestor(base) is False
        assert left.is_ancestor(left) is False
        assert left.common_ancestor(right).same_snapshot(base)
        assert m.common_ancestor(right).same_snapshot(m)
        assert left.common_ancestor(left.purge()) is None, \
            "purged chain shares no snapshot with its source"
    finally:
        fix["close"](m)


# ============================================================
# Full test suite
# ============================================================

ALL_TESTS = {
    "core": [
        test_construct,
        test_insert_then_lookup,
        test_shadowing,
        test_lookup_missing_raises,
        test_removal_visibility,
        test_remove_unknown_key,
        test_reinsert_after_remove,
    ],
    "rollback": [
        test_rollback_inverts_insert,
        test_rollback_recovers_removed,
        test_rollback_at_root_idempotent,
        test_rollback_scenario,
    ],
    "immutability": [
        test_immutability,
        test_branch_isolation,
    ],
    "enumeration": [
        test_active_keys_sorted,
        test_items_restartable,
    ],
    "history_management": [
        test_compact_preserves_state,
        test_compact_keeps_one_level,
        test_compact_then_mutate,
        test_purge_erases_history,
    ],
    "graphable": [
        test_depth_and_history,
        test_ancestry,
    ],
}


def run_compliance_tests(fixture: Dict[str, Any]) -> None:
    """Run all compliance tests for the given fixture.

    Required fixture keys:
        create_map - (initial dict) -> handle
        close      - (handle) -> None
    """
    for layer, tests in ALL_TESTS.items():
        for test_fn in tests:
            test_fn(fixture)
