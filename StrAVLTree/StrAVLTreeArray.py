import logging
import numpy as np
from numba import njit
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import TreeIntegrityError
from .options import Direction, Order, Projection, Release


logger = logging.getLogger(__name__)



# Arena layout, one int64 row per node:
#     ROW[5]: [left | right | parent | height | slot]
#     Row 0 is the absent node (NIL): height -1, slot -1, never written.
#     `slot` indexes the payload (key list + value vector) the node holds,
#     so a content swap only exchanges two slot cells.

NIL    = 0
LEFT   = 0
RIGHT  = 1
PARENT = 2
HEIGHT = 3
SLOT   = 4

COLUMNS      = 5
FREE_SLOT    = -1
INITIAL_SIZE = 64

VALUE_MAX        = (1 << 64) - 1
DEFAULT_CAPACITY = int(np.iinfo(np.uintp).max)

KeyType = Union[bytes, bytearray]



# ---------- JIT-Compiled Node Accessors ----------
@njit(inline="always")
def height(
    tree:  np.ndarray,
    index: np.int64

) -> np.int64:

    """
    Cached height of a node; the NIL row stores -1.
    """

    return tree[index, HEIGHT]

@njit(inline="always")
def balance_factor(
    tree:  np.ndarray,
    index: np.int64

) -> np.int64:

    """
    height(left) - height(right), 0 for the absent node.
    """

    if index == NIL:
        return 0

    return height(tree, tree[index, LEFT]) - height(tree, tree[index, RIGHT])

@njit(inline="always")
def update_height(
    tree:  np.ndarray,
    index: np.int64

) -> None:

    """
    Recompute the height of a node from its children. No-op on NIL.
    """

    if index != NIL:
        tree[index, HEIGHT] = max(
            height(tree, tree[index, LEFT]),
            height(tree, tree[index, RIGHT])
        ) + 1

@njit(inline="always")
def swap_payload(
    tree:   np.ndarray,
    first:  np.int64,
    second: np.int64

) -> None:

    """
    Exchange the payloads (key and value) of two nodes.

    Links and heights stay where they are: only the slot cells move.
    """

    slot                = tree[first, SLOT]
    tree[first, SLOT]   = tree[second, SLOT]
    tree[second, SLOT]  = slot

@njit(inline="always")
def attach_left(
    tree:   np.ndarray,
    parent: np.int64,
    child:  np.int64

) -> None:

    tree[parent, LEFT] = child
    if child != NIL:
        tree[child, PARENT] = parent

@njit(inline="always")
def attach_right(
    tree:   np.ndarray,
    parent: np.int64,
    child:  np.int64

) -> None:

    tree[parent, RIGHT] = child
    if child != NIL:
        tree[child, PARENT] = parent

@njit(inline="always")
def max_node(
    tree:  np.ndarray,
    index: np.int64

) -> np.int64:

    """
    Rightmost node of the subtree rooted at `index`.
    """

    while tree[index, RIGHT] != NIL:
        index = tree[index, RIGHT]

    return index

@njit(inline="always")
def min_node(
    tree:  np.ndarray,
    index: np.int64

) -> np.int64:

    """
    Leftmost node of the subtree rooted at `index`.
    """

    while tree[index, LEFT] != NIL:
        index = tree[index, LEFT]

    return index



# ---------- JIT-Compiled Balance Engine ----------
@njit(inline="always")
def right_rotation( # SRR: Single Right Rotation
    tree:  np.ndarray,
    index: np.int64

) -> None:

    """
    Perform a single right rotation (SRR) at `index` by swapping contents.

    The pivot row keeps its identity and its link from its parent. Its payload
    is exchanged with the payload of its left child, then the subtrees are
    recombined so the former left child row becomes the pivot's right child:

        before:        N               after:      N(L)
                      / \\                         /  \\
                     L   r                      ll   L(N)
                    / \\                              /  \\
                  ll   lr                           lr    r

    Heights of the reassembled right child and then of the pivot are
    recomputed, in that order.

    :param tree: Arena holding the AVL nodes
    :type tree: np.ndarray
    :param index: Row of the pivot node, must have a left child
    :type index: np.int64
    """

    left_index = tree[index, LEFT]

    # Make the left child's payload climb
    swap_payload(tree, index, left_index)

    # Cut
    right_tree = tree[index, RIGHT]
    left_left  = tree[left_index, LEFT]
    left_right = tree[left_index, RIGHT]

    # Recombine
    attach_left(tree, left_index, left_right)
    attach_right(tree, left_index, right_tree)
    attach_right(tree, index, left_index)
    attach_left(tree, index, left_left)

    # Update heights
    update_height(tree, left_index)
    update_height(tree, index)

@njit(inline="always")
def left_rotation( # SLR: Single Left Rotation
    tree:  np.ndarray,
    index: np.int64

) -> None:

    """
    Perform a single left rotation (SLR) at `index` by swapping contents.

    Mirror of `right_rotation`: the right child's payload climbs into the
    pivot row and the former right child row becomes the pivot's left child.

    :param tree: Arena holding the AVL nodes
    :type tree: np.ndarray
    :param index: Row of the pivot node, must have a right child
    :type index: np.int64
    """

    right_index = tree[index, RIGHT]

    swap_payload(tree, index, right_index)

    left_tree   = tree[index, LEFT]
    right_left  = tree[right_index, LEFT]
    right_right = tree[right_index, RIGHT]

    attach_right(tree, right_index, right_left)
    attach_left(tree, right_index, left_tree)
    attach_left(tree, index, right_index)
    attach_right(tree, index, right_right)

    update_height(tree, right_index)
    update_height(tree, index)

@njit(inline="always")
def rebalance_at(
    tree:  np.ndarray,
    index: np.int64

) -> np.int64:

    """
    Apply the rotation(s) matching the balance factor of `index`.

    Returns the number of single rotations performed (0, 1 or 2).
    """

    bf = balance_factor(tree, index)

    if bf == 2: # L
        if balance_factor(tree, tree[index, LEFT]) >= 0: # LL
            right_rotation(tree, index)
            return 1

        # LR
        left_rotation(tree, tree[index, LEFT])
        right_rotation(tree, index)
        return 2

    elif bf == -2: # R
        if balance_factor(tree, tree[index, RIGHT]) <= 0: # RR
            left_rotation(tree, index)
            return 1

        # RL
        right_rotation(tree, tree[index, RIGHT])
        left_rotation(tree, index)
        return 2

    return 0

@njit
def rebalance_after_insert(
    tree: np.ndarray,
    leaf: np.int64

) -> np.int64:

    """
    Retrace from the parent of a freshly linked leaf.

    Heights are refreshed on the way up until the first ancestor whose
    balance factor reached +-2; that node is rebalanced and the walk stops,
    since an insertion needs at most one rotation point.

    Returns the number of single rotations performed.
    """

    current = tree[leaf, PARENT]

    while current != NIL:
        if abs(balance_factor(tree, current)) >= 2:
            return rebalance_at(tree, current)

        update_height(tree, current)
        current = tree[current, PARENT]

    return 0

@njit
def rebalance_after_delete(
    tree:  np.ndarray,
    start: np.int64

) -> np.int64:

    """
    Retrace from the former parent of a spliced node up to the root.

    Unlike insertion, several ancestors may need a rotation, so the walk
    never stops early. Returns the number of single rotations performed.
    """

    rotations = 0
    current   = start

    while current != NIL:
        if abs(balance_factor(tree, current)) >= 2:
            rotations += rebalance_at(tree, current)
        else:
            update_height(tree, current)

        current = tree[current, PARENT]

    return rotations



# ---------- JIT-Compiled Insert / Delete Surgery ----------
@njit
def link_leaf(
    tree:    np.ndarray,
    parent:  np.int64,
    leaf:    np.int64,
    as_left: bool

) -> np.int64:

    """
    Hang an initialised leaf row under `parent` and rebalance.

    The caller has already run the key descent and knows on which side the
    first absent slot is. Returns the number of single rotations performed.
    """

    if as_left:
        attach_left(tree, parent, leaf)
    else:
        attach_right(tree, parent, leaf)

    return rebalance_after_insert(tree, leaf)

@njit
def remove_node(
    tree:   np.ndarray,
    target: np.int64

) -> Tuple[np.int64, np.int64, np.int64, np.int64, np.int64]:

    """
    Physically remove the entry held by `target` and rebalance.

    1. Two children: the payload is swapped with the in-order predecessor
       (maximum of the left subtree), which has at most one child and is
       removed instead.
    2. Splice: the sole child (or NIL) takes the removed row's place under
       its former parent.
    3. The removed row is cleared and the tree is retraced from the former
       parent up to the root.

    Args:
        tree (np.ndarray): Arena holding the AVL nodes.
        target (np.int64): Row of the node whose payload is being deleted.

    Returns:
        Tuple[np.int64, ...]:
            - removed: row that left the tree (to be recycled).
            - slot: payload slot of the deleted entry.
            - parent: former parent of the removed row (NIL if it was root).
            - child: row that replaced it (NIL if it was a leaf).
            - rotations: single rotations performed while retracing.
    """

    if tree[target, LEFT] != NIL and tree[target, RIGHT] != NIL:
        predecessor = max_node(tree, tree[target, LEFT])
        swap_payload(tree, target, predecessor)
        target = predecessor

    child = tree[target, LEFT]
    if child == NIL:
        child = tree[target, RIGHT]

    parent = tree[target, PARENT]

    if child != NIL:
        tree[child, PARENT] = parent

    if parent != NIL:
        if tree[parent, LEFT] == target:
            tree[parent, LEFT] = child
        else:
            tree[parent, RIGHT] = child

    slot = tree[target, SLOT]

    tree[target, LEFT]   = NIL
    tree[target, RIGHT]  = NIL
    tree[target, PARENT] = NIL
    tree[target, HEIGHT] = 0
    tree[target, SLOT]   = FREE_SLOT

    rotations = rebalance_after_delete(tree, parent)

    return target, slot, parent, child, rotations



# ---------- JIT-Compiled Traversal Engine ----------
# Depth-first kernels recurse once per level: the depth is bounded by the
# tree height, at most ~1.44 * log2(n + 2) for an AVL tree.
@njit
def pre_order( # VLR
    tree:     np.ndarray,
    index:    np.int64,
    out:      np.ndarray,
    position: np.int64,
    to_slot:  bool

) -> np.int64:

    """
    Write the subtree rooted at `index` into `out` starting at `position`.

    Each cell receives the node row, or its payload slot when `to_slot` is
    set. Returns the next free position.
    """

    if index == NIL:
        return position

    out[position] = tree[index, SLOT] if to_slot else index
    position      = pre_order(tree, tree[index, LEFT], out, position + 1, to_slot)

    return pre_order(tree, tree[index, RIGHT], out, position, to_slot)

@njit
def in_order( # LVR
    tree:     np.ndarray,
    index:    np.int64,
    out:      np.ndarray,
    position: np.int64,
    to_slot:  bool

) -> np.int64:

    if index == NIL:
        return position

    position      = in_order(tree, tree[index, LEFT], out, position, to_slot)
    out[position] = tree[index, SLOT] if to_slot else index

    return in_order(tree, tree[index, RIGHT], out, position + 1, to_slot)

@njit
def post_order( # LRV
    tree:     np.ndarray,
    index:    np.int64,
    out:      np.ndarray,
    position: np.int64,
    to_slot:  bool

) -> np.int64:

    if index == NIL:
        return position

    position      = post_order(tree, tree[index, LEFT], out, position, to_slot)
    position      = post_order(tree, tree[index, RIGHT], out, position, to_slot)
    out[position] = tree[index, SLOT] if to_slot else index

    return position + 1

@njit
def breadth_first(
    tree:       np.ndarray,
    root:       np.int64,
    out:        np.ndarray,
    left_first: bool,
    to_slot:    bool

) -> None:

    """
    Level-order visit using `out` itself as the queue.

    `out` must hold exactly as many cells as there are nodes. Children of
    the node in cell i are appended at the tail, then cell i is overwritten
    in place with its projection, so no other buffer is needed.
    """

    out[0] = root
    tail   = 1

    for i in range(out.size):
        current = out[i]

        if left_first:
            first  = tree[current, LEFT]
            second = tree[current, RIGHT]
        else:
            first  = tree[current, RIGHT]
            second = tree[current, LEFT]

        if first != NIL:
            out[tail] = first
            tail += 1

        if second != NIL:
            out[tail] = second
            tail += 1

        if to_slot:
            out[i] = tree[current, SLOT]

_DEPTH_FIRST = {
    Order.PRE_ORDER:  pre_order,
    Order.IN_ORDER:   in_order,
    Order.POST_ORDER: post_order,
}



# --------- AVLStrTree API ---------
class AVLStrTree:
    """
    Ordered dictionary from byte-string keys to 64-bit opaque values.

    Nodes live in a growable NumPy arena (see the layout above) and every
    structural operation runs in a Numba kernel; only the key comparisons of
    the descent happen in Python. Duplicate keys are kept and routed left.

    Node handles (arena rows) are NOT stable: rotations and deletions move
    payloads between rows, so a handle returned by a search may hold a
    different entry after any later insert or delete.

    Failures are reported through return values (``None``, ``0``, ``False``),
    never through exceptions, except for misuse of the constructor and the
    capacity setter.

    Attributes:
        tree (int64[:, :]): Arena [size, 5] storing the node rows.
        values (uint64[:]): Value of every payload slot.
        root (int): Row of the root node (0 if empty).
        count (int): Number of live nodes.
        rotations (int): Single rotations performed since creation.
    """

    def __init__(
        self,
        capacity:       Optional[int] = None,
        initial_size:   int = INITIAL_SIZE,
        key_releaser:   Optional[Callable[[KeyType], Any]] = None,
        value_releaser: Optional[Callable[[int], Any]] = None

    ) -> None:

        if capacity is None:
            capacity = DEFAULT_CAPACITY
        self._check_capacity(capacity, 0)

        if not isinstance(initial_size, int) or initial_size < 1:
            raise ValueError(
                f"The initial size must be a positive integer, not {initial_size!r}"
            )

        for hook in (key_releaser, value_releaser):
            if hook is not None and not callable(hook):
                raise ValueError(f"Release hooks must be callable, not {hook!r}")

        self._capacity      = int(capacity)
        self._initial_size  = initial_size
        self.key_releaser   = key_releaser
        self.value_releaser = value_releaser
        self.rotations      = 0
        self._reset()

    def _reset(self) -> None:
        size = self._initial_size + 1  # row 0 is NIL

        self.tree           = np.zeros((size, COLUMNS), dtype=np.int64)
        self.values         = np.zeros(size, dtype=np.uint64)
        self._keys: List[Optional[KeyType]] = [None] * size
        self._free          = 1
        self._free_list     = np.zeros((size, 2), dtype=np.int64)
        self._free_list_top = 0
        self.root           = NIL
        self.count          = 0

        self.tree[NIL, HEIGHT] = -1
        self.tree[NIL, SLOT]   = FREE_SLOT

    @staticmethod
    def _check_capacity(capacity: Any, count: int) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, (int, np.integer)):
            raise ValueError(f"The capacity must be an integer, not {capacity!r}")

        if not (count <= capacity <= DEFAULT_CAPACITY):
            raise ValueError(
                f"The capacity must be between {count} and {DEFAULT_CAPACITY}, not {capacity}"
            )

    @property
    def capacity(self) -> int:
        return self._capacity

    @capacity.setter
    def capacity(self, capacity: int) -> None:
        self._check_capacity(capacity, self.count)
        self._capacity = int(capacity)

    @property
    def height(self) -> int:
        return int(self.tree[self.root, HEIGHT])

    @property
    def size(self) -> int:
        """Rows currently allocated in the arena, NIL excluded."""
        return self.tree.shape[0] - 1

    # ---------- Arena management ----------
    def _grow(self) -> bool:
        """
        Double the arena. Returns False, leaving every array untouched, when
        memory cannot be acquired.
        """

        size     = self.tree.shape[0]
        new_size = size * 2

        try:
            tree      = np.zeros((new_size, COLUMNS), dtype=np.int64)
            values    = np.zeros(new_size, dtype=np.uint64)
            free_list = np.zeros((new_size, 2), dtype=np.int64)
            keys      = self._keys + [None] * (new_size - size)
        except MemoryError:
            logger.warning("Cannot grow the arena from %d to %d rows", size, new_size)
            return False

        tree[:size]      = self.tree
        values[:size]    = self.values
        free_list[:size] = self._free_list

        self.tree       = tree
        self.values     = values
        self._free_list = free_list
        self._keys      = keys

        logger.debug("Arena grown from %d to %d rows", size, new_size)
        return True

    def _allocate(self) -> Tuple[int, int]:
        """Take a (row, slot) pair, from the free list first. (0, 0) on failure."""

        if self._free_list_top > 0:
            self._free_list_top -= 1
            row, slot = self._free_list[self._free_list_top]
            return int(row), int(slot)

        if self._free == self.tree.shape[0] and not self._grow():
            return NIL, 0

        row = self._free
        self._free += 1
        return row, row

    def _recycle(self, row: int, slot: int) -> None:
        self._free_list[self._free_list_top] = (row, slot)
        self._free_list_top += 1

    def _release(self, slot: int, release: Release) -> None:
        key   = self._keys[slot]
        value = int(self.values[slot])

        self._keys[slot]   = None
        self.values[slot]  = 0

        if release.keys and self.key_releaser is not None:
            self.key_releaser(key)

        if release.values and self.value_releaser is not None:
            self.value_releaser(value)

    def _is_live(self, handle: Any) -> bool:
        if isinstance(handle, bool) or not isinstance(handle, (int, np.integer)):
            return False

        return 0 < handle < self._free and self.tree[handle, SLOT] != FREE_SLOT

    # ---------- Search ----------
    def _find(self, key: KeyType) -> int:
        """Row of the first exact match met on the descent, NIL if none."""

        tree    = self.tree
        keys    = self._keys
        current = self.root

        while current != NIL:
            node_key = keys[tree[current, SLOT]]

            if node_key > key:
                current = tree[current, LEFT]
            elif node_key < key:
                current = tree[current, RIGHT]
            else:
                return int(current)

        return NIL

    def _project(self, handle: int, projection: Projection) -> Any:
        if projection is Projection.NODE:
            return handle

        slot = self.tree[handle, SLOT]
        if projection is Projection.KEY:
            return self._keys[slot]

        return int(self.values[slot])

    def search(
        self,
        key:        KeyType,
        projection: Projection = Projection.VALUE

    ) -> Any:

        """
        Look up `key` and return the requested projection of the match.

        Returns None when there is no exact match, the key is not a byte
        string, or `projection` is not a Projection member.
        """

        if not isinstance(projection, Projection):
            logger.debug("search: invalid projection %r", projection)
            return None

        if not isinstance(key, (bytes, bytearray)):
            logger.debug("search: invalid key %r", key)
            return None

        handle = self._find(key)
        if handle == NIL:
            return None

        return self._project(handle, projection)

    # ---------- Insert ----------
    def insert(
        self,
        key:   KeyType,
        value: int = 0

    ) -> int:

        """
        Insert a (key, value) entry with auto-rebalancing.

        Duplicates are kept: a key equal to the current node's goes left.

        :param key: Borrowed byte-string key
        :param value: Opaque payload, an integer in [0, 2**64)
        :return: The new count on success, 0 on invalid input, full tree or
                 allocation failure (the tree is then left untouched)
        """

        if not isinstance(key, (bytes, bytearray)):
            logger.debug("insert: invalid key %r", key)
            return 0

        if (
            isinstance(value, bool)
            or not isinstance(value, (int, np.integer))
            or not (0 <= value <= VALUE_MAX)
        ):
            logger.debug("insert: invalid value %r", value)
            return 0

        if self.count >= self._capacity:
            logger.debug("insert: tree is full (capacity=%d)", self._capacity)
            return 0

        # Descent
        tree    = self.tree
        keys    = self._keys
        parent  = NIL
        as_left = False
        current = self.root

        while current != NIL:
            parent  = current
            as_left = keys[tree[current, SLOT]] >= key
            current = tree[current, LEFT] if as_left else tree[current, RIGHT]

        # New leaf, arrays may have been reallocated by now
        row, slot = self._allocate()
        if row == NIL:
            return 0

        self.tree[row] = (NIL, NIL, NIL, 0, slot)
        self._keys[slot]  = key
        self.values[slot] = value

        if parent == NIL:
            self.root = row
        else:
            self.rotations += int(link_leaf(self.tree, parent, row, as_left))

        self.count += 1
        return self.count

    # ---------- Delete ----------
    def delete(
        self,
        key:     KeyType,
        release: Release = Release.NONE

    ) -> bool:

        """
        Remove the first exact match of `key` and stabilize the tree.

        `release` selects which of the removed entry's buffers are handed to
        the release hooks. Returns True if an entry was removed; a missing
        key or an invalid argument returns False and changes nothing.
        """

        if not isinstance(release, Release):
            logger.debug("delete: invalid release option %r", release)
            return False

        if not isinstance(key, (bytes, bytearray)):
            logger.debug("delete: invalid key %r", key)
            return False

        target = self._find(key)
        if target == NIL:
            return False

        removed, slot, parent, child, rotations = remove_node(self.tree, target)

        if parent == NIL:
            self.root = int(child)

        # Release hooks see the entry before its row goes back to the free list
        try:
            self._release(int(slot), release)
        finally:
            self._recycle(int(removed), int(slot))
            self.count     -= 1
            self.rotations += int(rotations)

            if self.count == 0:
                self.root = NIL

        return True

    def update_value(
        self,
        key:   KeyType,
        value: int

    ) -> bool:

        """Overwrite the value of the first exact match in place."""

        if (
            not isinstance(key, (bytes, bytearray))
            or isinstance(value, bool)
            or not isinstance(value, (int, np.integer))
            or not (0 <= value <= VALUE_MAX)
        ):
            return False

        handle = self._find(key)
        if handle == NIL:
            return False

        self.values[self.tree[handle, SLOT]] = value
        return True

    # ---------- Traversals ----------
    def _output(self) -> Optional[np.ndarray]:
        try:
            return np.empty(self.count, dtype=np.int64)
        except MemoryError:
            logger.warning("Cannot allocate a traversal buffer of %d cells", self.count)
            return None

    def _project_all(self, out: np.ndarray, projection: Projection) -> Any:
        if projection is Projection.NODE:
            return out

        if projection is Projection.KEY:
            keys = self._keys
            return [keys[slot] for slot in out.tolist()]

        return self.values[out]

    def depth_first(
        self,
        order:      Order = Order.IN_ORDER,
        projection: Projection = Projection.KEY

    ) -> Any:

        """
        Depth-first visit of the whole tree.

        Args:
            order (Order): PRE_ORDER, IN_ORDER or POST_ORDER.
            projection (Projection): What to report for every node.

        Returns:
            int64 ndarray of handles for NODE, list of keys for KEY, uint64
            ndarray for VALUE; length `count`. None for an empty tree or an
            invalid option.
        """

        if not isinstance(order, Order) or not isinstance(projection, Projection):
            logger.debug("depth_first: invalid options %r, %r", order, projection)
            return None

        if self.root == NIL:
            return None

        out = self._output()
        if out is None:
            return None

        _DEPTH_FIRST[order](self.tree, self.root, out, 0, projection is not Projection.NODE)
        return self._project_all(out, projection)

    def breadth_first(
        self,
        direction:  Direction = Direction.LEFT_FIRST,
        projection: Projection = Projection.KEY

    ) -> Any:

        """
        Level-order visit of the whole tree, same outputs as `depth_first`.
        """

        if not isinstance(direction, Direction) or not isinstance(projection, Projection):
            logger.debug("breadth_first: invalid options %r, %r", direction, projection)
            return None

        if self.root == NIL:
            return None

        out = self._output()
        if out is None:
            return None

        breadth_first(
            self.tree,
            self.root,
            out,
            direction is Direction.LEFT_FIRST,
            projection is not Projection.NODE
        )
        return self._project_all(out, projection)

    # ---------- Teardown ----------
    def destroy(
        self,
        release: Release = Release.NONE

    ) -> bool:

        """
        Release every node and reset the tree to empty.

        All nodes are collected with a single breadth-first pass, then each
        payload goes through the release hooks selected by `release`. The
        tree can be reused afterwards.
        """

        if not isinstance(release, Release):
            logger.debug("destroy: invalid release option %r", release)
            return False

        if self.root != NIL:
            out = self._output()
            if out is None:
                return False

            breadth_first(self.tree, self.root, out, True, True)

            keys = self._keys
            try:
                for slot in out.tolist():
                    if release.keys and self.key_releaser is not None:
                        self.key_releaser(keys[slot])

                    if release.values and self.value_releaser is not None:
                        self.value_releaser(int(self.values[slot]))
            finally:
                self._reset()

            return True

        self._reset()
        return True

    # ---------- Node handles ----------
    @property
    def _max(self) -> int:
        """Row holding the greatest key, 0 if the tree is empty."""
        if self.root == NIL:
            return NIL
        return int(max_node(self.tree, self.root))

    @property
    def _min(self) -> int:
        """Row holding the smallest key, 0 if the tree is empty."""
        if self.root == NIL:
            return NIL
        return int(min_node(self.tree, self.root))

    def max_node(self) -> Optional[int]:
        return self._max or None

    def min_node(self) -> Optional[int]:
        return self._min or None

    def key_at(self, handle: int) -> Optional[KeyType]:
        if not self._is_live(handle):
            return None
        return self._keys[self.tree[handle, SLOT]]

    def value_at(self, handle: int) -> Optional[int]:
        if not self._is_live(handle):
            return None
        return int(self.values[self.tree[handle, SLOT]])

    def get_node(
        self,
        handle: int

    ) -> Optional[Tuple[KeyType, int, int, int, int, int]]:

        """
        Unpack a node row.

        Returns:
            (key, value, left, right, parent, height), or None if `handle`
            is not a live node. Absent links are reported as 0.
        """

        if not self._is_live(handle):
            return None

        left, right, parent, node_height, slot = self.tree[handle].tolist()
        return self._keys[slot], int(self.values[slot]), left, right, parent, node_height

    def get_left(self, handle: int) -> Optional[int]:
        node = self.get_node(handle)
        return None if node is None else node[2]

    def get_right(self, handle: int) -> Optional[int]:
        node = self.get_node(handle)
        return None if node is None else node[3]

    def get_parent(self, handle: int) -> Optional[int]:
        node = self.get_node(handle)
        return None if node is None else node[4]

    def get_height(self, handle: int) -> Optional[int]:
        node = self.get_node(handle)
        return None if node is None else node[5]

    def predecessor(self, handle: int) -> Optional[int]:
        """
        Largest node of the left subtree of `handle`, None if there is no
        left child or the handle is not live.
        """

        if not self._is_live(handle) or self.tree[handle, LEFT] == NIL:
            return None
        return int(max_node(self.tree, self.tree[handle, LEFT]))

    def successor(self, handle: int) -> Optional[int]:
        """
        Smallest node of the right subtree of `handle`, None if there is no
        right child or the handle is not live.
        """

        if not self._is_live(handle) or self.tree[handle, RIGHT] == NIL:
            return None
        return int(min_node(self.tree, self.tree[handle, RIGHT]))

    # ---------- Integrity ----------
    def validate(self) -> bool:
        """
        Check ordering, balance, cached heights, parent links and the count.

        Recommended for tests and debugging on small to medium trees.
        Raises TreeIntegrityError on the first violation found.
        """

        tree = self.tree
        keys = self._keys

        if (self.count == 0) != (self.root == NIL):
            raise TreeIntegrityError(
                f"count is {self.count} but root is {self.root}"
            )

        if self.root != NIL and tree[self.root, PARENT] != NIL:
            raise TreeIntegrityError("root has a parent", self.root)

        def check(index: int, low: Optional[KeyType], high: Optional[KeyType]) -> Tuple[int, int]:
            if index == NIL:
                return -1, 0

            left, right, _, node_height, slot = tree[index].tolist()
            key = keys[slot]

            if slot == FREE_SLOT or key is None:
                raise TreeIntegrityError("reachable node holds no payload", index)

            if (low is not None and key < low) or (high is not None and key > high):
                raise TreeIntegrityError(f"key {key!r} out of order", index)

            for child in (left, right):
                if child != NIL and tree[child, PARENT] != index:
                    raise TreeIntegrityError("broken parent link", child)

            left_height, left_size   = check(left, low, key)
            right_height, right_size = check(right, key, high)

            if node_height != max(left_height, right_height) + 1:
                raise TreeIntegrityError(
                    f"cached height {node_height} is stale", index
                )

            if abs(left_height - right_height) > 1:
                raise TreeIntegrityError(
                    f"balance factor {left_height - right_height}", index
                )

            return node_height, left_size + right_size + 1

        _, size = check(int(self.root), None, None)
        if size != self.count:
            raise TreeIntegrityError(f"{size} reachable nodes, count is {self.count}")

        return True

    # ---------- Python protocol ----------
    def __len__(self) -> int:
        return self.count

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, (bytes, bytearray)) and self._find(key) != NIL

    def __iter__(self) -> Iterator[KeyType]:
        keys = self.depth_first(Order.IN_ORDER, Projection.KEY)
        return iter(keys or [])

    def __repr__(self) -> str:
        return (
            "AVLStrTree(count=" + str(self.count)
            + ", root=" + str(int(self.root))
            + ", height=" + str(self.height) + ")"
        )



# --------- Utils ---------
def build_tree(
    items:    Iterable[Tuple[KeyType, int]],
    capacity: Optional[int] = None

) -> AVLStrTree:

    """
    Builds and populates an AVLStrTree from (key, value) pairs.

    Entries rejected by `insert` (bad types, capacity reached) are skipped.
    """

    avl = AVLStrTree(capacity)
    fill_tree(avl, items)

    return avl

def fill_tree(
    avl:   AVLStrTree,
    items: Iterable[Tuple[KeyType, int]]

) -> int:

    """
    Populates an existing tree. Returns how many entries were inserted.
    """

    inserted = 0
    for key, value in items:
        if avl.insert(key, value):
            inserted += 1

    return inserted

def remove_keys(
    avl:     AVLStrTree,
    keys:    Iterable[KeyType],
    release: Release = Release.NONE

) -> int:

    """
    Batch removal. Keys that are not in the tree are silently ignored.
    Returns how many entries were removed.
    """

    removed = 0
    for key in keys:
        if avl.delete(key, release):
            removed += 1

    return removed

def warmup() -> bool:
    """
    Minimally triggers JIT compilation for the tree kernels.
    """

    avl = AVLStrTree(initial_size=8)
    for key in (b"30", b"20", b"10", b"40", b"50", b"25", b"45"):
        avl.insert(key, 1)

    for order in Order:
        avl.depth_first(order, Projection.NODE)
        avl.depth_first(order, Projection.KEY)

    avl.breadth_first(Direction.LEFT_FIRST, Projection.VALUE)
    avl.breadth_first(Direction.RIGHT_FIRST, Projection.NODE)

    avl.delete(b"10")
    avl.delete(b"30")
    avl.min_node()
    avl.max_node()

    return True
