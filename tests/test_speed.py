
import os
import sys
import unittest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from gifwylib.core import speed

#============================================

class SpeedMultiplierTest(unittest.TestCase):
	#============================================
	def test_baseline_is_one(self) -> None:
		"""15 fps frames play at 1x."""
		durations = [1.0 / 15.0, 1.0 / 15.0]
		self.assertAlmostEqual(speed.current_speed_multiplier(durations), 1.0, delta=1e-4)

	#============================================
	def test_multiplier_is_clamped(self) -> None:
		"""Very slow and very fast frames clamp to 0.25 and 4.0."""
		self.assertAlmostEqual(speed.current_speed_multiplier([10.0, 10.0]), 0.25, delta=1e-4)
		self.assertAlmostEqual(speed.current_speed_multiplier([0.001, 0.001]), 4.0, delta=1e-4)

	#============================================
	def test_empty_durations(self) -> None:
		"""No frames means no speed change."""
		self.assertEqual(speed.current_speed_multiplier([]), 1.0)
		self.assertEqual(speed.reset_multiplier([]), 1.0)

	#============================================
	def test_reset_multiplier(self) -> None:
		"""Reset multiplier brings 10 fps back to 15 fps."""
		self.assertAlmostEqual(speed.reset_multiplier([0.10, 0.10]), 1.5, delta=1e-4)

	#============================================
	def test_quick_adjust_bounds(self) -> None:
		"""Stepped multipliers stay within 0.1 to 10."""
		self.assertAlmostEqual(speed.quick_adjusted_multiplier(1.0, 1.1), 1.1, delta=1e-4)
		self.assertIsNone(speed.quick_adjusted_multiplier(10.0, 1.1))
		self.assertIsNone(speed.quick_adjusted_multiplier(0.1, 0.9))

	#============================================
	def test_preview_interval_floor(self) -> None:
		"""Preview ticks are never faster than 33ms."""
		self.assertAlmostEqual(speed.preview_interval([0.001, 0.001], 4.0), 0.033, delta=1e-6)
		self.assertAlmostEqual(speed.preview_interval([0.2, 0.2], 2.0), 0.1, delta=1e-6)
		self.assertAlmostEqual(speed.preview_interval([], 2.0), 0.033, delta=1e-6)
		self.assertAlmostEqual(speed.preview_interval([0.2], 0.0), 0.033, delta=1e-6)

#============================================

def main() -> None:
	"""Run the unit tests."""
	unittest.main()

#============================================

if __name__ == "__main__":
	main()
