import threading
import unittest

from sharedtree import SharedRef, WeakRef, DroppedHandleError


class Payload(object):
	def __init__(self, name):
		self.name = name


class TestSharedRef(unittest.TestCase):
	""" counting discipline of strong handles """

	def setUp(self):
		self.dropped = []
		self.ref = SharedRef(Payload("a"), onDrop=self.dropped.append)

	def test_newCounts(self):
		self.assertEqual(self.ref.strongCount(), 1)
		self.assertEqual(self.ref.weakCount(), 0)

	def test_cloneAliases(self):
		other = self.ref.clone()
		self.assertEqual(self.ref.strongCount(), 2)
		self.assertIs(other.get(), self.ref.get())
		self.assertEqual(other, self.ref)
		self.assertTrue(other.ptrEq(self.ref))
		other.get().name = "changed"
		self.assertEqual(self.ref.get().name, "changed")

	def test_teardownOnLastDrop(self):
		""" hook runs at the exact drop taking strong count to zero """
		value = self.ref.get()
		other = self.ref.clone()
		self.ref.drop()
		self.assertEqual(self.dropped, [])
		self.assertEqual(other.strongCount(), 1)
		other.drop()
		self.assertEqual(len(self.dropped), 1)
		self.assertIs(self.dropped[0], value)

	def test_teardownExactlyOnce(self):
		weak = self.ref.downgrade()
		self.ref.drop()
		self.assertIsNone(weak.upgrade())
		weak.drop()
		self.assertEqual(len(self.dropped), 1)

	def test_droppedHandleIsDead(self):
		other = self.ref.clone()
		self.ref.drop()
		self.assertFalse(self.ref.alive)
		with self.assertRaises(DroppedHandleError):
			self.ref.get()
		with self.assertRaises(DroppedHandleError):
			self.ref.clone()
		with self.assertRaises(DroppedHandleError):
			self.ref.drop()
		# counts untouched by the failed calls
		self.assertEqual(other.strongCount(), 1)
		other.drop()

	def test_contextManagerDrops(self):
		with self.ref.clone() as other:
			self.assertEqual(other.strongCount(), 2)
		self.assertFalse(other.alive)
		self.assertEqual(self.ref.strongCount(), 1)
		with self.ref.downgrade() as weak:
			self.assertEqual(self.ref.weakCount(), 1)
		self.assertFalse(weak.alive)
		self.assertEqual(self.ref.weakCount(), 0)

	def test_equalityAndHash(self):
		other = self.ref.clone()
		unrelated = SharedRef(Payload("a"))
		self.assertEqual(len({self.ref, other, unrelated}), 2)
		self.assertNotEqual(self.ref, unrelated)
		# hash survives drop, so handles can leave sets cleanly
		before = hash(other)
		other.drop()
		self.assertEqual(hash(other), before)
		unrelated.drop()


class TestWeakRef(unittest.TestCase):
	""" observing without owning """

	def setUp(self):
		self.dropped = []
		self.ref = SharedRef(Payload("a"), onDrop=self.dropped.append)

	def test_downgradeCounts(self):
		weak = self.ref.downgrade()
		self.assertEqual(self.ref.weakCount(), 1)
		self.assertEqual(self.ref.strongCount(), 1)
		second = weak.clone()
		self.assertEqual(weak.weakCount(), 2)
		self.assertTrue(second.ptrEq(self.ref))
		weak.drop()
		second.drop()
		self.assertEqual(self.ref.weakCount(), 0)

	def test_upgradeLive(self):
		""" upgraded handle aliases the original value """
		weak = self.ref.downgrade()
		strong = weak.upgrade()
		self.assertIsNotNone(strong)
		self.assertEqual(self.ref.strongCount(), 2)
		strong.get().name = "through weak"
		self.assertEqual(self.ref.get().name, "through weak")
		strong.drop()
		weak.drop()

	def test_upgradeStale(self):
		weak = self.ref.downgrade()
		self.ref.drop()
		self.assertTrue(weak.expired)
		self.assertIsNone(weak.upgrade())
		self.assertEqual(weak.strongCount(), 0)
		weak.drop()

	def test_weakDoesNotGateTeardown(self):
		block = self.ref._block
		weak = self.ref.downgrade()
		self.ref.drop()
		self.assertEqual(len(self.dropped), 1)
		self.assertTrue(block.valueReleased)
		# counts block outlives the value while weak handles remain
		self.assertFalse(block.released)
		weak.drop()
		self.assertTrue(block.released)

	def test_blockReleasedWithoutWeak(self):
		block = self.ref._block
		self.ref.drop()
		self.assertTrue(block.valueReleased)
		self.assertTrue(block.released)

	def test_upgradeDuringTeardown(self):
		""" a hook peeking through a weak handle sees nothing """
		seen = []
		weak = []

		def hook(value):
			seen.append(weak[0].upgrade())

		ref = SharedRef(Payload("b"), onDrop=hook)
		weak.append(ref.downgrade())
		ref.drop()
		self.assertEqual(seen, [None])
		weak[0].drop()

	def test_weakAfterDrop(self):
		weak = self.ref.downgrade()
		weak.drop()
		with self.assertRaises(DroppedHandleError):
			weak.upgrade()


class TestThreadSafeRef(unittest.TestCase):

	def test_concurrentCloneDrop(self):
		""" counts come back to exactly one after many threads
		clone, upgrade and drop at once """
		dropped = []
		ref = SharedRef(Payload("shared"), onDrop=dropped.append,
		                threadSafe=True)
		weak = ref.downgrade()

		def work():
			for i in range(2000):
				other = ref.clone()
				upgraded = weak.upgrade()
				other.drop()
				upgraded.drop()

		threads = [threading.Thread(target=work) for i in range(8)]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join()

		self.assertEqual(ref.strongCount(), 1)
		self.assertEqual(ref.weakCount(), 1)
		self.assertEqual(dropped, [])
		ref.drop()
		self.assertEqual(len(dropped), 1)
		weak.drop()


if __name__ == '__main__':
	unittest.main()
