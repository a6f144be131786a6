""" the caller-facing tree object """
from __future__ import annotations

import logging
import threading
from contextlib import closing, nullcontext
from typing import Callable, Iterator, List, Optional, Tuple

import networkx

from sharedtree import core
from sharedtree.core import Node
from sharedtree.lib import RefList, TreeInvariantError, setDebug
from sharedtree.ref import SharedRef
from sharedtree.signal import Signal

log = logging.getLogger(__name__)

# marks a tree created with no seed root
EMPTY = object()


class Tree(object):
	""" forest of nodes with shared, weakly back-referenced ownership

	the tree holds each root strongly, each node holds its children
	strongly and its parent weakly - nodes are torn down the moment
	nothing holds them any more, children before parents

	handles given back by insert(), find(), parentOf(), childrenOf()
	and roots() belong to the caller, and must be dropped
	(or used as context managers) when done with:

	>>>tree = Tree("root")
	>>>with tree.root() as root:
	>>>	with tree.insert(root, "branchA") as branch:
	>>>		tree.insert(branch, "leafA").drop()
	>>>[(ref.get().value, depth) for ref, depth in tree.traverse()]
	[('root', 0), ('branchA', 1), ('leafA', 2)]

	"""

	# default for the multi-threaded variant, may be set per instance
	threadSafe = False
	debugOn = False
	indent = "  "

	def __init__(self, rootValue=EMPTY, threadSafe=None):
		if threadSafe is not None:
			self.threadSafe = threadSafe
		if self.debugOn:
			setDebug(True)
		self._roots = [] # [ SharedRef(Node) ]
		# the root list is the tree's own, nodes lock themselves
		self._rootsLock = threading.RLock() if self.threadSafe else nullcontext()

		# valueChanged signature: node, oldValue, newValue
		self.valueChanged = Signal()
		# structureChanged signature: parent node, child node, event
		self.structureChanged = Signal()
		# nodeTornDown signature: node - fires once per node, post-order
		self.nodeTornDown = Signal()

		if rootValue is not EMPTY:
			self.addRoot(rootValue).drop()

	def _createNode(self, value)->SharedRef:
		""" new node, with its signals feeding into the tree's """
		ref = Node.create(value, threadSafe=self.threadSafe)
		node = ref.get()
		node.valueChanged.connect(self.valueChanged)
		node.structureChanged.connect(self.structureChanged)
		node.tornDown.connect(self.nodeTornDown)
		return ref

	def _rootEntry(self, handle)->Optional[SharedRef]:
		""" the tree's own handle to a root, if handle is one """
		with self._rootsLock:
			for entry in self._roots:
				if entry.ptrEq(handle):
					return entry
		return None

	def _dropRootEntry(self, handle)->bool:
		with self._rootsLock:
			entry = self._rootEntry(handle)
			if entry is None:
				return False
			self._roots.remove(entry)
		entry.drop()
		return True

	def addRoot(self, value)->SharedRef:
		""" creates a new parentless node at the top of the tree
		:rtype SharedRef(Node)"""
		ref = self._createNode(value)
		with self._rootsLock:
			self._roots.append(ref.clone())
		log.debug("added root %r", ref.get())
		return ref

	def roots(self)->RefList:
		with self._rootsLock:
			return RefList(ref.clone() for ref in self._roots)

	def root(self, index=0)->Optional[SharedRef]:
		""" owned handle to a root, or None if there is none """
		with self._rootsLock:
			if not -len(self._roots) <= index < len(self._roots):
				return None
			return self._roots[index].clone()

	def insert(self, parentHandle:SharedRef, value, index=None)->SharedRef:
		""" creates a node under parentHandle, appended unless index is given
		:rtype SharedRef(Node)"""
		ref = self._createNode(value)
		try:
			core.attachChild(parentHandle, ref, index=index)
		except Exception:
			ref.drop()
			raise
		return ref

	def attach(self, parentHandle:SharedRef, nodeHandle:SharedRef, index=None):
		""" attaches a detached node (or a root) under parentHandle
		:raises AlreadyAttachedError: node still has a parent """
		core.attachChild(parentHandle, nodeHandle, index=index)
		self._dropRootEntry(nodeHandle)

	def remove(self, nodeHandle:SharedRef)->bool:
		""" takes the node out of the tree - a handle the caller
		holds stays valid, otherwise the node and its subtree go
		returns False if the node was not in the tree """
		if self._dropRootEntry(nodeHandle):
			return True
		return core.detach(nodeHandle)

	def reparent(self, nodeHandle:SharedRef, newParent:SharedRef, index=None):
		core.reparent(nodeHandle, newParent, index=index)
		self._dropRootEntry(nodeHandle)

	def setIndex(self, nodeHandle:SharedRef, index:int):
		""" reorders a node among its siblings, or a root among the roots """
		with self._rootsLock:
			entry = self._rootEntry(nodeHandle)
			if entry is not None:
				self._roots.remove(entry)
				self._roots.insert(index, entry)
				return
		core.setIndex(nodeHandle, index)

	def mutate(self, nodeHandle:SharedRef, fn:Callable):
		return core.mutate(nodeHandle, fn)

	def clear(self):
		""" drops every root the tree holds - nodes nobody else
		holds are torn down """
		with self._rootsLock:
			roots, self._roots = self._roots, []
		for ref in roots:
			ref.drop()

	def parentOf(self, nodeHandle:SharedRef)->Optional[SharedRef]:
		return core.parentOf(nodeHandle)

	def childrenOf(self, nodeHandle:SharedRef)->RefList:
		return core.childrenOf(nodeHandle)

	def traverse(self)->Iterator[Tuple[SharedRef, int]]:
		""" lazy depth-first walk over every root, yielding
		(handle, depth) parent-before-children, left to right

		yielded handles are borrowed - they stay valid until the
		walk moves on, clone() one to keep it. a node's children
		are read as it is reached, so nodes attached beneath an
		already-visited node are not seen
		"""
		stack = [(ref, 0) for ref in reversed(self.roots())]
		try:
			while stack:
				ref, depth = stack.pop()
				try:
					children = core.childrenOf(ref)
					stack.extend((child, depth + 1)
					             for child in reversed(children))
					yield ref, depth
				finally:
					if ref.alive:
						ref.drop()
		finally:
			for ref, depth in stack:
				if ref.alive:
					ref.drop()

	def find(self, predicate:Callable[[Node], bool])->Optional[SharedRef]:
		""" first node, in traverse() order, for which predicate(node)
		is true - or None """
		with closing(self.traverse()) as walk:
			for ref, depth in walk:
				if predicate(ref.get()):
					return ref.clone()
		return None

	def findAll(self, predicate:Callable[[Node], bool])->RefList:
		found = RefList()
		with closing(self.traverse()) as walk:
			for ref, depth in walk:
				if predicate(ref.get()):
					found.append(ref.clone())
		return found

	def allNodes(self)->RefList:
		""" every node, depth first """
		return self.findAll(lambda node: True)

	def leaves(self)->RefList:
		""" nodes without children """
		return self.findAll(lambda node: node.isLeaf)

	def depthOf(self, nodeHandle:SharedRef)->int:
		return nodeHandle.get().depth

	def pathTo(self, nodeHandle:SharedRef)->List:
		""" payloads from the node's root down to the node itself """
		path = [nodeHandle.get().value]
		ref = core.parentOf(nodeHandle)
		while ref is not None:
			with ref:
				path.insert(0, ref.get().value)
				ref = core.parentOf(ref)
		return path

	@property
	def size(self)->int:
		return sum(1 for i in self.traverse())

	def __len__(self):
		return self.size

	def __contains__(self, item):
		""" strict identity check against every node in the tree """
		if not isinstance(item, SharedRef):
			return False
		with closing(self.traverse()) as walk:
			return any(ref.ptrEq(item) for ref, depth in walk)

	def asGraph(self)->networkx.DiGraph:
		""" directed graph of the tree, node objects as graph nodes,
		edges from parent to child - shared nodes or cycles would
		show up here rather than looping forever """
		graph = networkx.DiGraph()
		seen = set()
		stack = list(reversed(self.roots()))
		try:
			while stack:
				ref = stack.pop()
				with ref:
					node = ref.get()
					if ref in seen:
						continue
					seen.add(ref)
					graph.add_node(node, value=node.payload._value)
					children = core.childrenOf(ref)
					for i, child in enumerate(children):
						graph.add_edge(node, child.get(), index=i)
					stack.extend(reversed(children))
		finally:
			for ref in stack:
				if ref.alive:
					ref.drop()
		return graph

	def checkConsistency(self):
		""" verifies that every forward edge has a matching back edge,
		that roots have no parent, and that the whole thing is a forest
		:raises TreeInvariantError: """
		graph = self.asGraph()
		if graph.number_of_nodes() and not networkx.is_branching(graph):
			raise TreeInvariantError("tree structure is not a forest")

		with self.roots() as roots:
			for root in roots:
				parent = core.parentOf(root)
				if parent is not None:
					parent.drop()
					raise TreeInvariantError(
						"root {!r} has a parent".format(root.get()))

		for node in graph.nodes:
			for child in graph.successors(node):
				with child._parent.read() as edge:
					weak = edge.value
					parent = weak.upgrade() if weak is not None else None
				if parent is None:
					raise TreeInvariantError(
						"{!r} is a child of {!r}, but has no parent".format(
							child, node))
				with parent:
					if parent.get() is not node:
						raise TreeInvariantError(
							"{!r} is a child of {!r}, but its parent is "
							"{!r}".format(child, node, parent.get()))

	def display(self)->str:
		""" indented outline of the whole tree """
		lines = []
		for ref, depth in self.traverse():
			lines.append(self.indent * depth + repr(ref.get().value))
		return "\n".join(lines)

	def __enter__(self):
		return self

	def __exit__(self, excType, excVal, excTb):
		self.clear()
		return False

	def __repr__(self):
		return "<{} ({} roots)>".format(type(self).__name__, len(self._roots))
