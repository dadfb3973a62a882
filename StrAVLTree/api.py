"""
Functional surface of the string-keyed AVL tree.

Every function accepts an absent tree (``None``) and reports it the same way
as any other failure: through its return value.
"""

from typing import Any, Callable, Optional

from .StrAVLTreeArray import AVLStrTree, KeyType
from .options import Direction, Order, Projection, Release



def create(
    capacity:       Optional[int] = None,
    key_releaser:   Optional[Callable[[KeyType], Any]] = None,
    value_releaser: Optional[Callable[[int], Any]] = None

) -> AVLStrTree:

    """
    Create an empty tree. Without `capacity` the ceiling is the largest
    unsigned size of the platform.
    """

    return AVLStrTree(
        capacity=capacity,
        key_releaser=key_releaser,
        value_releaser=value_releaser
    )

def destroy(
    tree:    Optional[AVLStrTree],
    release: Release = Release.NONE

) -> bool:

    if not isinstance(tree, AVLStrTree):
        return False

    return tree.destroy(release)

def search(
    tree:       Optional[AVLStrTree],
    key:        KeyType,
    projection: Projection = Projection.VALUE

) -> Any:

    if not isinstance(tree, AVLStrTree):
        return None

    return tree.search(key, projection)

def insert(
    tree:  Optional[AVLStrTree],
    key:   KeyType,
    value: int = 0

) -> int:

    """Returns the new count, 0 on failure."""

    if not isinstance(tree, AVLStrTree):
        return 0

    return tree.insert(key, value)

def delete(
    tree:    Optional[AVLStrTree],
    key:     KeyType,
    release: Release = Release.NONE

) -> bool:

    if not isinstance(tree, AVLStrTree):
        return False

    return tree.delete(key, release)

def depth_first(
    tree:       Optional[AVLStrTree],
    order:      Order = Order.IN_ORDER,
    projection: Projection = Projection.KEY

) -> Any:

    if not isinstance(tree, AVLStrTree):
        return None

    return tree.depth_first(order, projection)

def breadth_first(
    tree:       Optional[AVLStrTree],
    direction:  Direction = Direction.LEFT_FIRST,
    projection: Projection = Projection.KEY

) -> Any:

    if not isinstance(tree, AVLStrTree):
        return None

    return tree.breadth_first(direction, projection)
