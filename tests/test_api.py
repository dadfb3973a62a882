"""Public surface: functional API, input validation, capacity, release hooks, handles."""

import numpy as np
import pytest

import StrAVLTree
from StrAVLTree import (
    AVLStrTree,
    Direction,
    Order,
    Projection,
    Release,
    build_tree,
    fill_tree,
    remove_keys,
    warmup,
)
from StrAVLTree import StrAVLTreeArray

from conftest import in_order_keys


# ---------- Functional surface ----------

def test_create_defaults():
    avl = StrAVLTree.create()

    assert isinstance(avl, AVLStrTree)
    assert len(avl) == 0
    assert avl.capacity == np.iinfo(np.uintp).max
    assert avl.root == 0


def test_functional_round_trip():
    avl = StrAVLTree.create()

    assert StrAVLTree.insert(avl, b"beta", 2) == 1
    assert StrAVLTree.insert(avl, b"alpha", 1) == 2
    assert StrAVLTree.search(avl, b"beta", Projection.VALUE) == 2
    assert StrAVLTree.search(avl, b"alpha", Projection.KEY) == b"alpha"
    assert StrAVLTree.depth_first(avl, Order.IN_ORDER, Projection.KEY) == [b"alpha", b"beta"]
    assert StrAVLTree.breadth_first(avl, Direction.LEFT_FIRST, Projection.KEY) == [b"beta", b"alpha"]
    assert StrAVLTree.delete(avl, b"beta") is True
    assert StrAVLTree.destroy(avl) is True
    assert len(avl) == 0


def test_functional_surface_with_absent_tree():
    assert StrAVLTree.destroy(None) is False
    assert StrAVLTree.search(None, b"a", Projection.VALUE) is None
    assert StrAVLTree.insert(None, b"a", 1) == 0
    assert StrAVLTree.delete(None, b"a") is False
    assert StrAVLTree.depth_first(None, Order.IN_ORDER, Projection.KEY) is None
    assert StrAVLTree.breadth_first(None, Direction.LEFT_FIRST, Projection.KEY) is None


# ---------- Search ----------

def test_search_projections(tree):
    tree.insert(b"k", 99)
    handle = tree.search(b"k", Projection.NODE)

    assert handle == tree.root
    assert tree.search(b"k", Projection.KEY) == b"k"
    assert tree.search(b"k", Projection.VALUE) == 99
    assert tree.search(b"k") == 99


def test_search_missing_and_invalid(tree):
    tree.insert(b"k", 1)

    assert tree.search(b"x", Projection.VALUE) is None
    assert tree.search(b"k", None) is None
    assert tree.search(b"k", Order.IN_ORDER) is None
    assert tree.search(b"k", 0x4) is None
    assert tree.search(None, Projection.VALUE) is None
    assert tree.search("k", Projection.VALUE) is None


def test_bytearray_keys(tree):
    tree.insert(bytearray(b"m"), 1)
    tree.insert(b"a", 2)

    assert tree.search(b"m") == 1
    assert bytearray(b"a") in tree


# ---------- Insert validation ----------

@pytest.mark.parametrize("key, value", [
    (None, 1),
    ("text", 1),
    (42, 1),
    (b"k", -1),
    (b"k", 1 << 64),
    (b"k", 1.5),
    (b"k", None),
    (b"k", True),
])
def test_insert_rejects_invalid_input(tree, key, value):
    assert tree.insert(key, value) == 0
    assert len(tree) == 0
    assert tree.root == 0


def test_insert_accepts_full_value_range(tree):
    assert tree.insert(b"lo", 0) == 1
    assert tree.insert(b"hi", (1 << 64) - 1) == 2
    assert tree.insert(b"np", np.uint64(7)) == 3

    assert tree.search(b"hi") == (1 << 64) - 1
    assert tree.search(b"np") == 7


# ---------- Capacity ----------

def test_capacity_boundary():
    avl = AVLStrTree(capacity=3)

    assert [avl.insert(key, 0) for key in (b"a", b"b", b"c")] == [1, 2, 3]
    assert avl.insert(b"d", 0) == 0
    assert len(avl) == 3
    assert in_order_keys(avl) == [b"a", b"b", b"c"]

    avl.delete(b"a")
    assert avl.insert(b"d", 0) == 3


def test_capacity_zero_rejects_everything():
    avl = StrAVLTree.create(capacity=0)
    assert avl.insert(b"a", 0) == 0
    assert len(avl) == 0


def test_capacity_setter(tree):
    for key in (b"a", b"b"):
        tree.insert(key, 0)

    tree.capacity = 2
    assert tree.insert(b"c", 0) == 0

    with pytest.raises(ValueError):
        tree.capacity = 1
    with pytest.raises(ValueError):
        tree.capacity = "many"

    tree.capacity = 10
    assert tree.insert(b"c", 0) == 3


@pytest.mark.parametrize("kwargs", [
    {"capacity": -1},
    {"capacity": 2.0},
    {"initial_size": 0},
    {"key_releaser": "not callable"},
])
def test_constructor_misuse_raises(kwargs):
    with pytest.raises(ValueError):
        AVLStrTree(**kwargs)


# ---------- Arena ----------

def test_arena_grows_on_demand(small_tree):
    assert small_tree.size == 2

    for i in range(100):
        assert small_tree.insert(b"%03d" % i, i) == i + 1

    assert small_tree.size >= 100
    assert small_tree.validate()
    assert small_tree.search(b"042") == 42


def test_freed_rows_are_reused():
    avl = AVLStrTree(initial_size=16)
    keys = [b"%02d" % i for i in range(10)]
    for key in keys:
        avl.insert(key, 0)

    for key in keys[:5]:
        assert avl.delete(key)
    for key in keys[:5]:
        avl.insert(key, 1)

    assert avl.size == 16
    assert avl.depth_first(Order.IN_ORDER, Projection.NODE).max() <= 10
    assert avl.validate()


def test_allocation_failure_leaves_tree_untouched(monkeypatch):
    avl = AVLStrTree(initial_size=1)
    assert avl.insert(b"a", 1) == 1

    def no_memory(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr(StrAVLTreeArray.np, "zeros", no_memory)
    assert avl.insert(b"b", 2) == 0
    monkeypatch.undo()

    assert len(avl) == 1
    assert avl.size == 1
    assert avl.validate()
    assert avl.insert(b"b", 2) == 2


def test_traversal_buffer_failure_is_a_sentinel(monkeypatch, released, hooked_tree):
    """Without memory for the output buffer, traversals and teardown fail cleanly."""

    def no_memory(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr(StrAVLTreeArray.np, "empty", no_memory)
    assert hooked_tree.depth_first(Order.IN_ORDER, Projection.KEY) is None
    assert hooked_tree.breadth_first(Direction.LEFT_FIRST, Projection.NODE) is None
    assert hooked_tree.destroy(Release.ALL) is False
    monkeypatch.undo()

    assert released["keys"] == []
    assert released["values"] == []
    assert len(hooked_tree) == 5
    assert hooked_tree.validate()
    assert list(hooked_tree) == [b"a", b"b", b"c", b"d", b"e"]


# ---------- Release hooks ----------

@pytest.fixture
def released():
    return {"keys": [], "values": []}


@pytest.fixture
def hooked_tree(released):
    avl = StrAVLTree.create(
        key_releaser=released["keys"].append,
        value_releaser=released["values"].append,
    )
    for value, key in enumerate((b"c", b"a", b"e", b"b", b"d"), start=1):
        avl.insert(key, value)
    return avl


@pytest.mark.parametrize("release, keys, values", [
    (Release.NONE,   [],      []),
    (Release.KEYS,   [b"a"],  []),
    (Release.VALUES, [],      [2]),
    (Release.ALL,    [b"a"],  [2]),
])
def test_delete_release_options(hooked_tree, released, release, keys, values):
    assert hooked_tree.delete(b"a", release) is True

    assert released["keys"] == keys
    assert released["values"] == values


def test_delete_releases_the_removed_entry_after_payload_swap(hooked_tree, released):
    """The root has two children: its payload is swapped before removal."""
    assert hooked_tree.delete(b"c", Release.ALL) is True

    assert released["keys"] == [b"c"]
    assert released["values"] == [1]
    assert b"c" not in hooked_tree
    assert hooked_tree.validate()


def test_delete_rejects_invalid_release(hooked_tree, released):
    assert hooked_tree.delete(b"a", None) is False
    assert hooked_tree.delete(b"a", 0x3) is False
    assert hooked_tree.delete(b"a", Projection.KEY) is False

    assert len(hooked_tree) == 5
    assert released["keys"] == []


def test_destroy_releases_everything(hooked_tree, released):
    assert StrAVLTree.destroy(hooked_tree, Release.ALL) is True

    assert sorted(released["keys"]) == [b"a", b"b", b"c", b"d", b"e"]
    assert sorted(released["values"]) == [1, 2, 3, 4, 5]
    assert len(hooked_tree) == 0
    assert hooked_tree.root == 0
    assert hooked_tree.validate()

    # Still usable
    assert hooked_tree.insert(b"z", 26) == 1


def test_destroy_keys_only_in_level_order(hooked_tree, released):
    assert hooked_tree.destroy(Release.KEYS) is True

    assert released["keys"] == [b"c", b"a", b"e", b"b", b"d"]
    assert released["values"] == []


def test_delete_releases_before_the_row_is_freed():
    seen = []

    def key_releaser(key):
        seen.append((key, len(avl), avl._free_list_top))

    avl = StrAVLTree.create(key_releaser=key_releaser)
    for key in (b"b", b"a", b"c"):
        avl.insert(key, 0)

    assert avl.delete(b"a", Release.KEYS) is True

    # The hook ran while the entry was still counted and its row not recycled
    assert seen == [(b"a", 3, 0)]
    assert len(avl) == 2
    assert avl._free_list_top == 1


def test_delete_stays_consistent_when_a_hook_raises():
    def key_releaser(key):
        raise RuntimeError("cannot release")

    avl = StrAVLTree.create(key_releaser=key_releaser)
    for key in (b"b", b"a", b"c"):
        avl.insert(key, 0)

    with pytest.raises(RuntimeError):
        avl.delete(b"a", Release.KEYS)

    assert len(avl) == 2
    assert b"a" not in avl
    assert avl.validate()
    assert avl.insert(b"a", 0) == 3


def test_destroy_resets_when_a_hook_raises():
    calls = []

    def value_releaser(value):
        calls.append(value)
        if len(calls) == 2:
            raise RuntimeError("cannot release")

    avl = StrAVLTree.create(value_releaser=value_releaser)
    for value, key in enumerate((b"b", b"a", b"c"), start=1):
        avl.insert(key, value)

    with pytest.raises(RuntimeError):
        avl.destroy(Release.VALUES)

    assert calls == [1, 2]
    assert len(avl) == 0
    assert avl.root == 0
    assert avl.validate()
    assert avl.insert(b"z", 0) == 1


def test_destroy_rejects_invalid_release(hooked_tree, released):
    assert hooked_tree.destroy("keys") is False
    assert len(hooked_tree) == 5


def test_destroy_empty_tree(tree):
    assert tree.destroy(Release.ALL) is True


# ---------- Node handles ----------

def test_node_accessors(tree):
    for key in (b"b", b"a", b"c"):
        tree.insert(key, ord(key))

    root = tree.root
    assert tree.get_node(root) == (b"b", ord("b"), 2, 3, 0, 1)
    assert tree.get_left(root) == 2
    assert tree.get_right(root) == 3
    assert tree.get_parent(2) == root
    assert tree.get_height(2) == 0
    assert tree.key_at(3) == b"c"
    assert tree.value_at(2) == ord("a")


@pytest.mark.parametrize("handle", [0, -1, 4, 1000, None, "1", True])
def test_invalid_handles(tree, handle):
    for key in (b"b", b"a", b"c"):
        tree.insert(key, 0)

    assert tree.get_node(handle) is None
    assert tree.key_at(handle) is None
    assert tree.value_at(handle) is None
    assert tree.get_left(handle) is None


def test_freed_handle_is_not_live(tree):
    for key in (b"b", b"a", b"c"):
        tree.insert(key, 0)

    tree.delete(b"c")
    assert tree.key_at(3) is None


def test_min_max_predecessor_successor(tree):
    assert tree.min_node() is None
    assert tree.max_node() is None

    for key in (b"b", b"a", b"c"):
        tree.insert(key, 0)

    assert tree.key_at(tree.min_node()) == b"a"
    assert tree.key_at(tree.max_node()) == b"c"
    assert tree.key_at(tree.predecessor(tree.root)) == b"a"
    assert tree.key_at(tree.successor(tree.root)) == b"c"
    assert tree.predecessor(tree.min_node()) is None
    assert tree.successor(tree.max_node()) is None


# ---------- Misc ----------

def test_update_value(tree):
    tree.insert(b"k", 1)

    assert tree.update_value(b"k", 5) is True
    assert tree.search(b"k") == 5
    assert tree.update_value(b"missing", 5) is False
    assert tree.update_value(b"k", -5) is False
    assert tree.search(b"k") == 5


def test_python_protocol(tree):
    assert list(tree) == []

    for key in (b"b", b"a", b"c"):
        tree.insert(key, 0)

    assert len(tree) == 3
    assert list(tree) == [b"a", b"b", b"c"]
    assert b"a" in tree
    assert b"z" not in tree
    assert "a" not in tree
    assert repr(tree) == "AVLStrTree(count=3, root=1, height=1)"


def test_bulk_helpers():
    avl = build_tree([(b"x", 1), (b"y", 2), (None, 3), (b"z", -1)])

    assert list(avl) == [b"x", b"y"]
    assert fill_tree(avl, [(b"w", 0), (b"x", 9)]) == 2
    assert remove_keys(avl, [b"x", b"nope", b"x"]) == 2
    assert list(avl) == [b"w", b"y"]


def test_build_tree_respects_capacity():
    avl = build_tree(((b"%d" % i, i) for i in range(10)), capacity=4)
    assert len(avl) == 4


def test_warmup():
    assert warmup() is True
