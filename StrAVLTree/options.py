"""Option types accepted by the string-keyed AVL tree.

Every configuration axis is a closed enumeration: callers pass exactly one
member, anything else (``None``, a bare integer, a member of another axis)
is rejected by the tree before it touches its state.
"""

from enum import Enum



class Release(Enum):
    """Which borrowed buffers are handed to the release hooks on removal."""

    NONE   = "none"
    KEYS   = "keys"
    VALUES = "values"
    ALL    = "all"

    @property
    def keys(self) -> bool:
        return self in (Release.KEYS, Release.ALL)

    @property
    def values(self) -> bool:
        return self in (Release.VALUES, Release.ALL)


class Projection(Enum):
    """What a search or a traversal reports for every visited node."""

    NODE  = "node"   # arena handle (row index)
    KEY   = "key"
    VALUE = "value"


class Order(Enum):
    """Depth-first visit order."""

    PRE_ORDER  = "pre"    # node, left, right
    IN_ORDER   = "in"     # left, node, right
    POST_ORDER = "post"   # left, right, node


class Direction(Enum):
    """Breadth-first child enqueue order."""

    LEFT_FIRST  = "left"
    RIGHT_FIRST = "right"
