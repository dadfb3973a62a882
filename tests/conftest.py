"""Shared fixtures for the StrAVLTree test suite."""

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from StrAVLTree import AVLStrTree, Order, Projection


@pytest.fixture
def tree():
    """An empty tree with the default capacity."""
    return AVLStrTree()


@pytest.fixture
def small_tree():
    """A tree with a tiny arena, so that growth is exercised early."""
    return AVLStrTree(initial_size=2)


def in_order_keys(avl):
    return avl.depth_first(Order.IN_ORDER, Projection.KEY) or []


def root_key(avl):
    return avl.key_at(avl.root)
