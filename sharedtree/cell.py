""" interior mutability - values that can be read or changed through
any handle, with borrows checked at runtime instead of by ownership

Cell - single-threaded, conflicting borrows fail immediately
LockedCell - multi-threaded, conflicting borrows wait on a reader-writer lock
"""
from __future__ import annotations

import threading
from enum import IntEnum

from sharedtree.lib import BorrowError


class BorrowFlag(IntEnum):
	UNUSED = 0
	# any positive value counts active readers
	WRITE = -1


class ReadGuard(object):
	""" scoped shared access to a cell's value
	released on leaving the with-block, on any exit path """

	def __init__(self, cell):
		self._cell = cell
		self._released = False

	@property
	def released(self)->bool:
		return self._released

	@property
	def value(self):
		if self._released:
			raise BorrowError("guard used after release")
		return self._cell._value

	def release(self):
		""" idempotent """
		if self._released:
			return
		self._released = True
		self._cell._unborrow()

	def __enter__(self):
		return self

	def __exit__(self, excType, excVal, excTb):
		self.release()
		return False

	def __repr__(self):
		return "<{} : {!r}>".format(
			type(self).__name__,
			"(released)" if self._released else self._cell._value)


class WriteGuard(ReadGuard):
	""" scoped exclusive access - value may be reassigned """

	@ReadGuard.value.setter
	def value(self, val):
		if self._released:
			raise BorrowError("guard used after release")
		self._cell._value = val

	def release(self):
		if self._released:
			return
		self._released = True
		self._cell._unborrowMut()


class Cell(object):
	""" any number of readers OR one writer, never both

	>>>cell = Cell([])
	>>>with cell.write() as guard:
	>>>	guard.value.append(1)
	>>>cell.read()	# fine
	>>>cell.write()	# BorrowError while the read guard above is held

	"""

	def __init__(self, value=None):
		self._value = value
		self._flag = BorrowFlag.UNUSED

	@property
	def readers(self)->int:
		return max(int(self._flag), 0)

	@property
	def writing(self)->bool:
		return self._flag == BorrowFlag.WRITE

	def read(self)->ReadGuard:
		if self._flag == BorrowFlag.WRITE:
			raise BorrowError("cannot read {!r} - already borrowed for "
			                  "writing".format(self))
		self._flag += 1
		return ReadGuard(self)

	def write(self)->WriteGuard:
		if self._flag == BorrowFlag.WRITE:
			raise BorrowError("cannot write {!r} - already borrowed for "
			                  "writing".format(self))
		if self._flag != BorrowFlag.UNUSED:
			raise BorrowError("cannot write {!r} - {} reader(s) "
			                  "outstanding".format(self, self.readers))
		self._flag = BorrowFlag.WRITE
		return WriteGuard(self)

	def _unborrow(self):
		self._flag -= 1

	def _unborrowMut(self):
		self._flag = BorrowFlag.UNUSED

	def get(self):
		""" momentary read """
		with self.read() as guard:
			return guard.value

	def replace(self, value):
		""" swaps in a new value, returns the old one """
		with self.write() as guard:
			old = guard.value
			guard.value = value
		return old

	def __repr__(self):
		return "<{} ({} readers{})>".format(
			type(self).__name__, self.readers,
			", writing" if self.writing else "")


class RWLock(object):
	""" reader-writer lock, preferring writers so they cannot starve

	a thread already holding a read may read again without waiting -
	any other re-entry would deadlock, so it raises instead
	"""

	def __init__(self):
		self._cond = threading.Condition(threading.Lock())
		self._readers = {} # thread ident : read count
		self._writer = None
		self._waitingWriters = 0

	@property
	def readers(self)->int:
		return sum(self._readers.values())

	@property
	def writing(self)->bool:
		return self._writer is not None

	def acquireRead(self):
		me = threading.get_ident()
		with self._cond:
			if self._writer == me:
				raise BorrowError("read requested by the thread holding "
				                  "the write lock")
			if me in self._readers:
				self._readers[me] += 1
				return
			while self._writer is not None or self._waitingWriters:
				self._cond.wait()
			self._readers[me] = 1

	def releaseRead(self):
		me = threading.get_ident()
		with self._cond:
			count = self._readers[me] - 1
			if count:
				self._readers[me] = count
			else:
				del self._readers[me]
				self._cond.notify_all()

	def acquireWrite(self):
		me = threading.get_ident()
		with self._cond:
			if self._writer == me or me in self._readers:
				raise BorrowError("write requested by a thread already "
				                  "holding this lock")
			self._waitingWriters += 1
			try:
				while self._writer is not None or self._readers:
					self._cond.wait()
			finally:
				self._waitingWriters -= 1
			self._writer = me

	def releaseWrite(self):
		with self._cond:
			self._writer = None
			self._cond.notify_all()


class LockedCell(Cell):
	""" cell for the multi-threaded variant -
	read() and write() block until the lock is free, with no timeout """

	def __init__(self, value=None):
		super(LockedCell, self).__init__(value)
		self._lock = RWLock()

	@property
	def readers(self)->int:
		return self._lock.readers

	@property
	def writing(self)->bool:
		return self._lock.writing

	def read(self)->ReadGuard:
		self._lock.acquireRead()
		return ReadGuard(self)

	def write(self)->WriteGuard:
		self._lock.acquireWrite()
		return WriteGuard(self)

	def _unborrow(self):
		self._lock.releaseRead()

	def _unborrowMut(self):
		self._lock.releaseWrite()
