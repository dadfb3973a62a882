class StrAVLTreeError(Exception):
    """Base class for errors raised by the string-keyed AVL tree."""


class TreeIntegrityError(StrAVLTreeError):
    """
    Raised by ``AVLStrTree.validate`` when an invariant does not hold.

    Carries the arena handle of the first offending node (0 when the fault
    is not tied to a single node, e.g. a wrong node count).
    """

    def __init__(self, message: str, handle: int = 0) -> None:
        super().__init__(message)
        self.handle = handle
