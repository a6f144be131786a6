""" minimal callback hub, used for node teardown hooks and change events """
import inspect
from weakref import WeakKeyDictionary


class Signal(object):
	""" slots are called in connection order

	plain functions (and other signals) are held strongly, so a lambda
	given as a hook stays alive -
	bound methods are held weakly by their instance, so connecting a
	method never keeps its object alive
	"""

	def __init__(self):
		self._functions = []
		self._methods = WeakKeyDictionary()
		self._active = True

	def __call__(self, *args, **kwargs):
		if not self._active:
			return
		# copy, so slots can disconnect themselves while being called
		for func in list(self._functions):
			func(*args, **kwargs)

		for obj, funcs in list(self._methods.items()):
			for func in list(funcs):
				func(obj, *args, **kwargs)

	def emit(self, *args, **kwargs):
		""" brings this object up to parity with qt """
		self(*args, **kwargs)

	def connect(self, slot):
		if inspect.ismethod(slot):
			if slot.__self__ not in self._methods:
				self._methods[slot.__self__] = []
			if slot.__func__ not in self._methods[slot.__self__]:
				self._methods[slot.__self__].append(slot.__func__)
		elif slot not in self._functions:
			self._functions.append(slot)

	def disconnect(self, slot):
		if inspect.ismethod(slot):
			funcs = self._methods.get(slot.__self__, [])
			if slot.__func__ in funcs:
				funcs.remove(slot.__func__)
		elif slot in self._functions:
			self._functions.remove(slot)

	def clear(self):
		self._functions = []
		self._methods.clear()

	def mute(self):
		self._active = False

	def activate(self):
		self._active = True

	def __len__(self):
		return len(self._functions) + sum(
			len(i) for i in self._methods.values())
