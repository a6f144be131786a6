""" tree nodes - base structural functionality before the Tree wrapper

a node is owned by whichever SharedRefs point at it, normally its
parent's children list plus any handle a caller has kept

children : strong handles, in insertion order
parent : weak handle, so a child never keeps its parent alive

all edits go through attachChild() / detach() / reparent() / setIndex(),
which keep both directions of an edge in agreement
"""
from __future__ import annotations

import logging

from enum import Enum
from typing import Callable, Optional

from sharedtree.cell import Cell, LockedCell
from sharedtree.lib import AlreadyAttachedError, CycleError, RefList
from sharedtree.ref import SharedRef
from sharedtree.signal import Signal

log = logging.getLogger(__name__)


class Node(object):
	""" single tree node - payload, children and parent edge each
	live in their own cell, so any handle may change them

	never construct directly, use Node.create()
	"""

	class StructureEvents(Enum):
		childAttached = 1
		childDetached = 2
		childMoved = 3

	def __init__(self, value=None, threadSafe=False):
		cellCls = LockedCell if threadSafe else Cell
		self.threadSafe = threadSafe
		self.payload = cellCls(value)
		self._children = cellCls([]) # [ SharedRef(Node) ]
		self._parent = cellCls(None) # WeakRef(Node) or None

		# valueChanged signature: node, oldValue, newValue
		self.valueChanged = Signal()
		# structureChanged signature: parent node, child node, event
		self.structureChanged = Signal()
		# tornDown signature: node
		self.tornDown = Signal()

	@classmethod
	def create(cls, value=None, threadSafe=False)->SharedRef:
		""" new node with no children and no parent
		:rtype SharedRef(Node)"""
		node = cls(value, threadSafe=threadSafe)
		return SharedRef(node, onDrop=cls._teardown, threadSafe=threadSafe)

	@property
	def value(self):
		return self.payload.get()
	@value.setter
	def value(self, val):
		with self.payload.write() as guard:
			oldVal = guard.value
			guard.value = val
		if oldVal != val:
			self.valueChanged(self, oldVal, val)

	@property
	def isRoot(self)->bool:
		with self._parent.read() as edge:
			return edge.value is None or edge.value.expired

	@property
	def isLeaf(self)->bool:
		return self.childCount == 0

	@property
	def childCount(self)->int:
		with self._children.read() as kids:
			return len(kids.value)

	@property
	def depth(self)->int:
		""" number of ancestors above this node """
		depth = 0
		ref = self._parentRef()
		while ref is not None:
			depth += 1
			with ref:
				ref = ref.get()._parentRef()
		return depth

	@property
	def index(self)->int:
		""" position under parent, -1 for roots """
		parent = self._parentRef()
		if parent is None:
			return -1
		with parent:
			with parent.get()._children.read() as kids:
				for i, ref in enumerate(kids.value):
					if ref.get() is self:
						return i
		return -1

	def _parentRef(self)->Optional[SharedRef]:
		""" owned strong handle to parent, or None """
		with self._parent.read() as edge:
			weak = edge.value
			return weak.upgrade() if weak is not None else None

	@staticmethod
	def _clearParentEdge(child):
		with child.get()._parent.write() as edge:
			weak = edge.value
			edge.value = None
		if weak is not None:
			weak.drop()

	def _teardown(self):
		""" strong count of this node just reached zero -
		release every child, then announce this node as gone,
		so hooks fire children first

		every child is released even if a hook raises -
		the first error is raised once this node's own hook has run """
		with self._children.write() as kids:
			children = kids.value
			kids.value = []
		error = None
		for child in children:
			for step in (self._clearParentEdge, SharedRef.drop):
				try:
					step(child)
				except Exception as e:
					if error is None:
						error = e
		log.debug("node %r torn down", self)
		try:
			self.tornDown(self)
		finally:
			if error is not None:
				raise error

	def __repr__(self):
		return "<{} : {!r}>".format(type(self).__name__, self.payload._value)


def parentOf(node:SharedRef)->Optional[SharedRef]:
	""" owned handle to the node's parent, or None if the node is a root
	or its parent no longer exists """
	return node.get()._parentRef()


def childrenOf(node:SharedRef)->RefList:
	""" snapshot of the node's children, in order -
	later edits to the tree never show up in the returned list """
	with node.get()._children.read() as kids:
		return RefList(ref.clone() for ref in kids.value)


def isAncestor(candidate:SharedRef, node:SharedRef, includeSelf=True)->bool:
	""" True if candidate is node, or lies on the path from node
	up to its root """
	current = node.clone() if includeSelf else parentOf(node)
	try:
		while current is not None:
			if current.ptrEq(candidate):
				return True
			above = parentOf(current)
			current.drop()
			current = above
		return False
	finally:
		if current is not None and current.alive:
			current.drop()


def attachChild(parent:SharedRef, child:SharedRef, index=None):
	""" appends child under parent, or inserts it at index

	parent keeps its own clone of child, the caller's handle is untouched
	:raises AlreadyAttachedError: child still has a live parent
	:raises CycleError: child is parent, or one of parent's ancestors
	"""
	if isAncestor(child, parent):
		raise CycleError("cannot attach {!r} beneath itself".format(
			child.get()))
	childNode = child.get()
	parentNode = parent.get()

	# parent edge is always locked before the children list
	with childNode._parent.write() as edge:
		existing = edge.value
		if existing is not None:
			if not existing.expired:
				raise AlreadyAttachedError(
					"{!r} is already attached, detach it first".format(
						childNode))
			existing.drop()
			edge.value = None
		with parentNode._children.write() as kids:
			if index is None:
				kids.value.append(child.clone())
			else:
				kids.value.insert(index, child.clone())
		edge.value = parent.downgrade()

	log.debug("attached %r under %r", childNode, parentNode)
	parentNode.structureChanged(parentNode, childNode,
	                            Node.StructureEvents.childAttached)


def insertChild(parent:SharedRef, child:SharedRef, index:int):
	""" attachChild() at a given position """
	attachChild(parent, child, index=index)


def detach(child:SharedRef)->bool:
	""" removes child from its parent, if it has one
	returns False if child was already a root """
	childNode = child.get()
	with childNode._parent.write() as edge:
		weak = edge.value
		if weak is None:
			return False
		edge.value = None
		parent = weak.upgrade()
		removed = None
		if parent is not None:
			with parent.get()._children.write() as kids:
				for i, ref in enumerate(kids.value):
					if ref.ptrEq(child):
						removed = kids.value.pop(i)
						break
	weak.drop()
	if parent is None:
		return True

	with parent:
		parentNode = parent.get()
		log.debug("detached %r from %r", childNode, parentNode)
		parentNode.structureChanged(parentNode, childNode,
		                            Node.StructureEvents.childDetached)
	if removed is not None:
		removed.drop()
	return True


def reparent(child:SharedRef, newParent:SharedRef, index=None):
	""" moves child under newParent - rejected moves leave the
	tree as it was """
	if isAncestor(child, newParent):
		raise CycleError("cannot move {!r} beneath itself".format(
			child.get()))
	detach(child)
	attachChild(newParent, child, index=index)


def setIndex(child:SharedRef, index:int):
	""" reorders child among its siblings """
	parent = parentOf(child)
	if parent is None:
		return
	with parent:
		parentNode = parent.get()
		with parentNode._children.write() as kids:
			siblings = kids.value
			for i, ref in enumerate(siblings):
				if ref.ptrEq(child):
					siblings.insert(index, siblings.pop(i))
					break
		parentNode.structureChanged(parentNode, child.get(),
		                            Node.StructureEvents.childMoved)


def mutate(node:SharedRef, fn:Callable):
	""" applies fn to node's payload under a write guard

	fn may change the payload in place and return None, which
	keeps the payload - any other result replaces it
	returns the payload after the call """
	target = node.get()
	with target.payload.write() as guard:
		oldVal = guard.value
		newVal = fn(oldVal)
		if newVal is None:
			newVal = oldVal
		guard.value = newVal
	target.valueChanged(target, oldVal, newVal)
	return newVal
