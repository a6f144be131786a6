""" python functions and errors used by the tree and its handles """
import logging

log = logging.getLogger("sharedtree")
log.addHandler(logging.NullHandler())


class TreeError(Exception):
	""" base for everything raised by sharedtree """


class BorrowError(TreeError, RuntimeError):
	""" a cell was borrowed in a way that conflicts with
	a guard that is still outstanding """


class AlreadyAttachedError(TreeError, ValueError):
	""" attempted to attach a node that still has a live parent -
	detach it first, or use reparent() """


class CycleError(TreeError, ValueError):
	""" attempted to attach a node under itself or one of its
	own descendants """


class DroppedHandleError(TreeError, RuntimeError):
	""" a handle was used after drop(), or its value was already released """


class TreeInvariantError(TreeError, AssertionError):
	""" forward and back edges of the tree disagree -
	always a defect, never a runtime condition """


class RefList(list):
	""" plain list of owned handles, returned by snapshot lookups

	every element belongs to the caller - either drop them
	individually, call drop() on the list, or use it as a context manager:

	>>>with tree.childrenOf(node) as children:
	>>>	for child in children: ...
	"""

	def drop(self):
		""" drops every handle still alive in the list, then empties it """
		while self:
			ref = self.pop()
			if ref.alive:
				ref.drop()

	def __enter__(self):
		return self

	def __exit__(self, excType, excVal, excTb):
		self.drop()
		return False


def setDebug(state=True):
	""" route package debug output to stderr, or stop doing so """
	handlers = [i for i in log.handlers if getattr(i, "_sharedtreeDebug", False)]
	if state:
		log.setLevel(logging.DEBUG)
		if not handlers:
			handler = logging.StreamHandler()
			handler.setFormatter(logging.Formatter(
				"%(name)s %(levelname)s: %(message)s"))
			handler._sharedtreeDebug = True
			log.addHandler(handler)
	else:
		log.setLevel(logging.NOTSET)
		for handler in handlers:
			log.removeHandler(handler)
