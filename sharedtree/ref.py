""" reference-counted handles with deterministic teardown

python's own collector decides for itself when objects go away,
so tree nodes are instead owned through explicit counts:

SharedRef - strong handle, keeps the value alive
WeakRef - observes the value, must be upgraded before use

every handle is dropped explicitly (or by leaving a with-block),
and the value's teardown hook runs at the exact drop that takes
the strong count to zero
"""
from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from typing import Optional

from sharedtree.lib import DroppedHandleError

log = logging.getLogger(__name__)


class RefBlock(object):
	""" bookkeeping shared by every handle aliasing one value

	value is live while strong >= 1 -
	the block itself counts as released once strong and weak are both 0
	"""

	def __init__(self, value, onDrop=None, threadSafe=False):
		self.value = value
		self.onDrop = onDrop
		self.strong = 1
		self.weak = 0
		self.tearingDown = False
		# value released / whole block released
		self.valueReleased = False
		self.released = False
		self.threadSafe = threadSafe
		self._lock = threading.Lock() if threadSafe else nullcontext()

	def incStrong(self):
		with self._lock:
			self.strong += 1

	def tryIncStrong(self):
		""" only succeeds if the value is still alive """
		with self._lock:
			if self.strong == 0:
				return False
			self.strong += 1
			return True

	def decStrong(self):
		with self._lock:
			self.strong -= 1
			dead = self.strong == 0
			if dead:
				self.tearingDown = True
		if dead:
			self._teardown()

	def incWeak(self):
		with self._lock:
			self.weak += 1

	def decWeak(self):
		with self._lock:
			self.weak -= 1
			if self.weak == 0 and self.valueReleased:
				self.released = True

	def _teardown(self):
		""" runs the hook outside the count lock, so the hook
		may freely drop other handles """
		value = self.value
		log.debug("tearing down %r", value)
		try:
			if self.onDrop is not None:
				self.onDrop(value)
		finally:
			with self._lock:
				self.value = None
				self.onDrop = None
				self.valueReleased = True
				self.tearingDown = False
				if self.weak == 0:
					self.released = True


class _Handle(object):
	""" common plumbing for strong and weak handles -
	a handle aliases a block until it is dropped """

	def __init__(self, block):
		self._block = block
		# kept after drop, so equality and hashing stay stable
		self._key = block

	@property
	def alive(self)->bool:
		""" False once this handle has been dropped """
		return self._block is not None

	def _liveBlock(self)->RefBlock:
		if self._block is None:
			raise DroppedHandleError(
				"{} used after drop()".format(type(self).__name__))
		return self._block

	def strongCount(self)->int:
		return self._key.strong

	def weakCount(self)->int:
		return self._key.weak

	def ptrEq(self, other)->bool:
		""" true if both handles alias the same value, regardless
		of handle type """
		return isinstance(other, _Handle) and self._key is other._key

	def __eq__(self, other):
		if type(other) is type(self):
			return self._key is other._key
		return NotImplemented

	def __hash__(self):
		return hash(id(self._key))

	def __enter__(self):
		return self

	def __exit__(self, excType, excVal, excTb):
		if self.alive:
			self.drop()
		return False


class SharedRef(_Handle):
	""" strong, counted handle

	>>>ref = SharedRef(value, onDrop=hook)
	>>>other = ref.clone()	# strong 2
	>>>ref.drop(); other.drop()	# hook(value) runs here, once
	"""

	def __init__(self, value, onDrop=None, threadSafe=False):
		super(SharedRef, self).__init__(
			RefBlock(value, onDrop=onDrop, threadSafe=threadSafe))

	@classmethod
	def _fromBlock(cls, block)->SharedRef:
		""" wrap a block whose strong count was already raised """
		ref = cls.__new__(cls)
		_Handle.__init__(ref, block)
		return ref

	def get(self):
		""" returns the referenced value """
		return self._liveBlock().value

	@property
	def threadSafe(self)->bool:
		return self._key.threadSafe

	def clone(self)->SharedRef:
		block = self._liveBlock()
		block.incStrong()
		return self._fromBlock(block)

	def downgrade(self)->WeakRef:
		block = self._liveBlock()
		block.incWeak()
		return WeakRef._fromBlock(block)

	def drop(self):
		""" releases this handle - if it was the last strong one,
		the value's teardown hook runs before this returns """
		block = self._liveBlock()
		self._block = None
		block.decStrong()

	def __repr__(self):
		if not self.alive:
			return "<SharedRef (dropped)>"
		return "<SharedRef (strong={}, weak={}) : {!r}>".format(
			self.strongCount(), self.weakCount(), self._block.value)


class WeakRef(_Handle):
	""" non-owning handle, never extends the value's lifetime -
	upgrade() is the only way through to the value """

	@classmethod
	def _fromBlock(cls, block)->WeakRef:
		ref = cls.__new__(cls)
		_Handle.__init__(ref, block)
		return ref

	@property
	def expired(self)->bool:
		""" True once the value has been torn down, or is being torn down """
		return self._key.strong == 0

	def upgrade(self)->Optional[SharedRef]:
		""" returns a new strong handle, or None if the value is gone """
		block = self._liveBlock()
		if block.tryIncStrong():
			return SharedRef._fromBlock(block)
		return None

	def clone(self)->WeakRef:
		block = self._liveBlock()
		block.incWeak()
		return self._fromBlock(block)

	def drop(self):
		block = self._liveBlock()
		self._block = None
		block.decWeak()

	def __repr__(self):
		if not self.alive:
			return "<WeakRef (dropped)>"
		return "<WeakRef (strong={}, weak={})>".format(
			self.strongCount(), self.weakCount())
