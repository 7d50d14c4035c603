"""VersionedMap behaviour beyond the compliance suite: the read-only
Mapping protocol, introspection helpers, logging and threaded branching."""

import logging
from collections.abc import ItemsView, ValuesView
from concurrent.futures import ThreadPoolExecutor

import pytest

from timetravel import KeyNotFound, Present, REMOVED, VersionedMap, create


@pytest.fixture
def history():
    """foo:1 -> +bar:2 -> -foo"""
    root = create({"foo": 1})
    added = root.insert("bar", 2)
    return root, added, added.remove("foo")


class TestMappingProtocol:
    def test_getitem(self, history):
        root, added, removed = history
        assert added["bar"] == 2
        with pytest.raises(KeyError):
            removed["foo"]
        with pytest.raises(KeyNotFound):
            removed["never"]

    def test_removed_getitem_is_plain_key_error(self, history):
        _, _, removed = history
        with pytest.raises(KeyError) as exc_info:
            removed["foo"]
        assert not isinstance(exc_info.value, KeyNotFound)

    def test_contains_len_iter(self, history):
        _, added, removed = history
        assert "foo" in added
        assert "foo" not in removed
        assert "never" not in removed
        assert len(added) == 2
        assert len(removed) == 1
        assert list(added) == ["bar", "foo"]

    def test_get_keys_values(self, history):
        _, added, removed = history
        assert removed.get("foo", "gone") == "gone"
        assert added.get("foo") == 1
        assert list(added.keys()) == ["bar", "foo"]
        assert list(added.values()) == [2, 1]

    def test_equality_is_by_content(self, history):
        root, added, removed = history
        assert added.rollback() == root
        assert removed == {"bar": 2}
        assert added != root
        assert removed.compact() == removed

    def test_items_is_reiterable_view(self, history):
        _, added, _ = history
        view = added.items()
        assert isinstance(view, ItemsView)
        assert list(view) == [("bar", 2), ("foo", 1)]
        assert list(view) == list(view)
        assert view == dict(added).items()
        assert ("foo", 1) in view
        assert len(view) == 2

    def test_values_is_view(self, history):
        _, added, removed = history
        view = added.values()
        assert isinstance(view, ValuesView)
        assert list(view) == [2, 1]
        assert list(view) == added.active_values()
        assert list(removed.values()) == [2]

    def test_dict_conversion(self, history):
        _, added, _ = history
        assert dict(added) == {"foo": 1, "bar": 2}

    def test_not_hashable(self):
        with pytest.raises(TypeError):
            hash(create({}))


class TestConstruction:
    def test_create_empty(self):
        m = create()
        assert m.active_keys() == []
        assert m.is_root

    def test_from_pairs(self):
        m = VersionedMap.from_mapping([("b", 2), ("a", 1)])
        assert m.active_keys() == ["a", "b"]

    def test_initial_mapping_copied(self):
        source = {"foo": 1}
        m = create(source)
        source["foo"] = 2
        source["bar"] = 3
        assert dict(m) == {"foo": 1}

    def test_repr(self):
        assert repr(create({"a": 1}).insert("b", 2)) == \
            "VersionedMap({'a': 1, 'b': 2}, depth=1)"


class TestIntrospection:
    def test_tombstone_not_storable(self):
        m = create({"k": 1})
        with pytest.raises(TypeError):
            m.insert("k", REMOVED)
        with pytest.raises(TypeError):
            create({"k": REMOVED})
        assert m.lookup("k") == 1

    def test_resolve_returns_slots(self, history):
        _, added, removed = history
        assert added.resolve("bar") == Present(2)
        assert removed.resolve("foo") is REMOVED
        with pytest.raises(KeyNotFound):
            removed.resolve("never")

    def test_changes_is_tip_delta(self, history):
        root, added, removed = history
        assert dict(removed.changes()) == {"foo": REMOVED}
        assert dict(added.changes()) == {"bar": Present(2)}
        assert dict(root.changes()) == {"foo": Present(1)}

    def test_compact_changes_hold_active_state(self, history):
        _, _, removed = history
        assert dict(removed.compact().changes()) == {"bar": Present(2)}

    def test_ancestors(self, history):
        root, added, removed = history
        ancestors = removed.ancestors()
        assert len(ancestors) == 2
        assert ancestors[0].same_snapshot(added)
        assert ancestors[-1].same_snapshot(root)
        assert root.ancestors() == []

    def test_history_zero_limit(self, history):
        _, _, removed = history
        assert removed.history(limit=0) == []

    def test_unorderable_keys(self):
        m = create({1: "a"}).insert("b", 2)
        assert m.lookup("b") == 2
        with pytest.raises(TypeError):
            m.active_keys()


class TestDeepHistory:
    def test_long_chain_walks_iteratively(self):
        m = create()
        for i in range(5000):
            m = m.insert(i % 50, i)
        assert m.depth == 5000
        assert len(m.active_keys()) == 50
        assert m.lookup(0) == 4950
        with pytest.raises(KeyNotFound):
            m.lookup(-1)

    def test_compact_shortcuts_enumeration(self):
        m = create({"a": 1})
        for i in range(100):
            m = m.insert("a", i).remove("a")
        c = m.insert("b", 1).compact()
        assert c.active_keys() == ["b"]
        assert c.lookup("a") is REMOVED
        assert c.rollback().depth == 201


    def test_compacted_tip_resolves_from_own_delta(self):
        m = create({"a": 1})
        for i in range(50):
            m = m.insert(f"k{i:02d}", i)
        c = m.remove("a").compact()
        delta = c.changes()
        for key in c.active_keys():
            assert c.resolve(key) is delta[key]
        assert "a" not in delta


class TestLogging:
    def test_compact_logs_debug(self, caplog, history):
        _, _, removed = history
        caplog.set_level(logging.DEBUG, logger="timetravel")
        removed.compact()
        assert "compacting 1 active keys over depth 2" in caplog.text

    def test_purge_logs_debug(self, caplog, history):
        _, _, removed = history
        caplog.set_level(logging.DEBUG, logger="timetravel")
        removed.purge()
        assert "purging history of depth 2" in caplog.text

    def test_insert_does_not_log(self, caplog):
        caplog.set_level(logging.DEBUG, logger="timetravel")
        create().insert("a", 1).lookup("a")
        assert caplog.records == []


class TestConcurrency:
    def test_sibling_branches_from_threads(self):
        base = create({"shared": 0})

        def branch(i):
            return base.insert(f"k{i:02d}", i)

        with ThreadPoolExecutor(max_workers=8) as pool:
            branches = list(pool.map(branch, range(32)))

        assert base.active_keys() == ["shared"]
        for i, m in enumerate(branches):
            assert m.active_keys() == [f"k{i:02d}", "shared"]
            assert m.rollback().same_snapshot(base)
