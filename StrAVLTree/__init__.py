"""
StrAVLTree - array-backed AVL tree keyed by byte strings.

    from StrAVLTree import create, insert, search, Projection

    tree = create()
    insert(tree, b"key", 42)
    search(tree, b"key", Projection.VALUE)   # 42
"""

__version__ = "1.0.0"

from .errors import StrAVLTreeError, TreeIntegrityError
from .options import Direction, Order, Projection, Release
from .StrAVLTreeArray import (
    AVLStrTree,
    build_tree,
    fill_tree,
    remove_keys,
    warmup,
)
from .api import (
    create,
    destroy,
    search,
    insert,
    delete,
    depth_first,
    breadth_first,
)

__all__ = [
    "__version__",
    "AVLStrTree",
    "StrAVLTreeError",
    "TreeIntegrityError",
    "Direction",
    "Order",
    "Projection",
    "Release",
    "build_tree",
    "fill_tree",
    "remove_keys",
    "warmup",
    "create",
    "destroy",
    "search",
    "insert",
    "delete",
    "depth_first",
    "breadth_first",
]
