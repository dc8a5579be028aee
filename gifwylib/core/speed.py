#!/usr/bin/env python3

from gifwylib.core import utils

#============================================

MIN_DISPLAY_MULTIPLIER = 0.25
MAX_DISPLAY_MULTIPLIER = 4.0
MIN_STEP_MULTIPLIER = 0.1
MAX_STEP_MULTIPLIER = 10.0
MIN_PREVIEW_INTERVAL = 0.033

#============================================

def _mean(durations: list) -> float:
	return sum(durations) / float(len(durations))

#============================================

def current_speed_multiplier(durations: list) -> float:
	"""
	Playback speed relative to the 15 fps baseline, clamped to 0.25..4.0.
	"""
	if len(durations) == 0:
		return 1.0
	standard = 1.0 / utils.BASELINE_FPS
	raw = standard / _mean(durations)
	return utils.clamp(raw, MIN_DISPLAY_MULTIPLIER, MAX_DISPLAY_MULTIPLIER)

#============================================

def reset_multiplier(durations: list) -> float:
	"""
	Multiplier that brings the average frame back to the 15 fps baseline.
	"""
	if len(durations) == 0:
		return 1.0
	return _mean(durations) / (1.0 / utils.BASELINE_FPS)

#============================================

def quick_adjusted_multiplier(current: float, step: float):
	next_value = current * step
	if next_value < MIN_STEP_MULTIPLIER or next_value > MAX_STEP_MULTIPLIER:
		return None
	return next_value

#============================================

def preview_interval(durations: list, multiplier: float) -> float:
	if len(durations) == 0 or multiplier <= 0:
		return MIN_PREVIEW_INTERVAL
	return max(MIN_PREVIEW_INTERVAL, _mean(durations) / multiplier)
