#!/usr/bin/env python3

import math
from dataclasses import dataclass

#============================================

MAX_EXTRACT_FRAMES = 3000

# (wider than, scale width down to)
SIZE_STEP_DOWN = (
	(3840, 1920),
	(2560, 1280),
	(1920, 1280),
)

#============================================

@dataclass(frozen=True)
class ExtractionSettings:
	frame_interval: float
	sample_step: float
	target_size: tuple
	max_frames: int

#============================================

def step_down_size(width: int, height: int) -> tuple:
	"""Cap very wide sources with the fixed step-down table."""
	aspect = float(width) / float(height)
	for (limit, new_width) in SIZE_STEP_DOWN:
		if width > limit:
			return (new_width, max(1, int(round(new_width / aspect))))
	return (width, height)

#============================================

def fit_max_dimension(size: tuple, max_dimension: int) -> tuple:
	(width, height) = size
	if max_dimension is None or max(width, height) <= max_dimension:
		return size
	scale = float(max_dimension) / float(max(width, height))
	return (max(1, int(round(width * scale))), max(1, int(round(height * scale))))

#============================================

def compute_settings(native_fps: float, native_size: tuple, target_fps: float,
	max_frames: int = MAX_EXTRACT_FRAMES, max_dimension: int = None) -> ExtractionSettings:
	"""
	Pick the sampling step and output size for one source.

	The step is never finer than one source frame. An unknown source rate
	is treated as the target rate.
	"""
	if target_fps <= 0:
		raise RuntimeError("target fps must be positive")
	if native_fps is None or not math.isfinite(native_fps) or native_fps <= 0:
		native_fps = target_fps
	frame_interval = max(1.0, native_fps / target_fps)
	sample_step = frame_interval / native_fps
	size = step_down_size(native_size[0], native_size[1])
	size = fit_max_dimension(size, max_dimension)
	return ExtractionSettings(
		frame_interval=frame_interval,
		sample_step=sample_step,
		target_size=size,
		max_frames=min(max_frames, MAX_EXTRACT_FRAMES),
	)

#============================================

def sample_timestamps(duration: float, settings: ExtractionSettings) -> list:
	"""Timestamps in [0, duration) at the sampling step, capped in count."""
	times = []
	index = 0
	while len(times) < settings.max_frames:
		timestamp = index * settings.sample_step
		if timestamp >= duration:
			break
		times.append(timestamp)
		index += 1
	return times

#============================================

def chunked(items: list, size: int) -> list:
	return [items[start:start + size] for start in range(0, len(items), size)]
