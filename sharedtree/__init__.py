"""
Tree of shared, counted nodes -
children owned by their parent, parents only weakly
referenced by their children, so teardown is deterministic
and runs depth-first, exactly once per node.

Please depend on / import only the objects included
in this init file.

"""

from .lib import (TreeError, BorrowError, AlreadyAttachedError, CycleError,
                  DroppedHandleError, TreeInvariantError, RefList, setDebug)
from .signal import Signal
from .ref import SharedRef, WeakRef
from .cell import Cell, LockedCell, ReadGuard, WriteGuard, BorrowFlag
from .core import (Node, attachChild, insertChild, detach, reparent,
                   setIndex, childrenOf, parentOf, mutate, isAncestor)
from .tree import Tree

__all__ = [
	"Tree",
	"Node",
	"SharedRef",
	"WeakRef",
	"Cell",
	"LockedCell",
	"ReadGuard",
	"WriteGuard",
	"BorrowFlag",
	"Signal",
	"RefList",
	"attachChild",
	"insertChild",
	"detach",
	"reparent",
	"setIndex",
	"childrenOf",
	"parentOf",
	"mutate",
	"isAncestor",
	"setDebug",
	"TreeError",
	"BorrowError",
	"AlreadyAttachedError",
	"CycleError",
	"DroppedHandleError",
	"TreeInvariantError",
]
