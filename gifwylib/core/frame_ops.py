#!/usr/bin/env python3

"""
Synchronous transforms over a Timeline.

Every function edits the Timeline in place and runs to completion.
Out-of-range indices and malformed parameters leave the Timeline
unchanged instead of raising, and no function here empties a non-empty
Timeline.
"""

import math
import numpy
import PIL.Image
from gifwylib.core import utils
from gifwylib.core.timeline import Frame
from gifwylib.core.timeline import Timeline

#============================================

SIMILAR_THRESHOLD = 5
STRICT_SIMILAR_THRESHOLD = 2
STATIC_THRESHOLD = 3
SHORT_FRAME_SECONDS = 0.05
SIMILARITY_SAMPLES = 1000
# rough bytes of GIF output per source pixel
GIF_BYTES_PER_PIXEL = 0.3
STRICT_TARGET_KB = 100
MIN_OPTIMIZE_FRAMES = 5

#============================================

def delete_frame(timeline: Timeline, index: int) -> bool:
	if len(timeline) <= 1:
		return False
	if index < 0 or index >= len(timeline):
		return False
	del timeline.frames[index]
	return True

#============================================

def clamp_range(timeline: Timeline, start: int, stop: int) -> tuple:
	start = max(0, start)
	stop = min(len(timeline), stop)
	if stop < start:
		stop = start
	return (start, stop)

#============================================

def delete_range(timeline: Timeline, start: int, stop: int) -> bool:
	"""Remove frames in [start, stop) unless that would leave nothing."""
	(start, stop) = clamp_range(timeline, start, stop)
	count = stop - start
	if count == 0:
		return False
	if len(timeline) - count < 1:
		return False
	del timeline.frames[start:stop]
	return True

#============================================

def trim(timeline: Timeline, start: int, stop: int) -> bool:
	"""Keep only frames in [start, stop)."""
	(start, stop) = clamp_range(timeline, start, stop)
	if stop - start == 0:
		return False
	timeline.frames = timeline.frames[start:stop]
	return True

#============================================

def adjust_speed(timeline: Timeline, multiplier: float) -> bool:
	if not math.isfinite(multiplier) or multiplier <= 0:
		return False
	for frame in timeline.frames:
		frame.duration = utils.clamp_duration(frame.duration / multiplier)
	return True

#============================================

def set_all_duration(timeline: Timeline, value: float) -> bool:
	if not math.isfinite(value):
		return False
	for frame in timeline.frames:
		frame.duration = utils.clamp_duration(value)
	return True

#============================================

def set_frame_duration(timeline: Timeline, index: int, value: float) -> bool:
	if index < 0 or index >= len(timeline):
		return False
	if not math.isfinite(value):
		return False
	timeline.frames[index].duration = utils.clamp_duration(value)
	return True

#============================================

def reverse(timeline: Timeline) -> None:
	timeline.frames.reverse()

#============================================

def yoyo(timeline: Timeline) -> None:
	"""
	Append the sequence backwards, skipping the last frame so the turn
	point is not shown twice.
	"""
	backwards = [frame.copy() for frame in reversed(timeline.frames[:-1])]
	timeline.frames.extend(backwards)

#============================================

def _keep_positions(timeline: Timeline, keep) -> bool:
	kept = [frame for index, frame in enumerate(timeline.frames) if keep(index)]
	if len(kept) == 0 or len(kept) == len(timeline):
		return False
	timeline.frames = kept
	return True

#============================================

def remove_even(timeline: Timeline) -> bool:
	"""
	Keep frames at even zero-based positions.

	Dropped durations are discarded, so playback gets shorter. This is
	frame-rate thinning, unlike remove_similar and friends.
	"""
	return _keep_positions(timeline, lambda index: index % 2 == 0)

#============================================

def remove_odd(timeline: Timeline) -> bool:
	"""Keep frames at odd zero-based positions; durations are discarded."""
	return _keep_positions(timeline, lambda index: index % 2 != 0)

#============================================

def remove_every_nth(timeline: Timeline, n: int) -> bool:
	if n <= 1:
		return False
	return _keep_positions(timeline, lambda index: (index + 1) % n != 0)

#============================================

def _sample_bytes(image: PIL.Image.Image) -> numpy.ndarray:
	if image.mode not in ('RGB', 'RGBA', 'L'):
		image = image.convert('RGBA')
	flat = numpy.asarray(image, dtype=numpy.uint8).reshape(-1)
	step = max(1, flat.size // SIMILARITY_SAMPLES)
	return flat[::step].astype(numpy.int32)

#============================================

def frames_are_similar(image_a: PIL.Image.Image, image_b: PIL.Image.Image,
	threshold: int) -> bool:
	"""
	Mean absolute byte difference over ~1000 evenly spaced offsets of the
	raw pixel buffers, compared against threshold.
	"""
	if image_a.size != image_b.size:
		return False
	if image_a.mode != image_b.mode:
		image_a = image_a.convert('RGBA')
		image_b = image_b.convert('RGBA')
	samples_a = _sample_bytes(image_a)
	samples_b = _sample_bytes(image_b)
	count = min(samples_a.size, samples_b.size)
	if count == 0:
		return False
	diff = int(numpy.abs(samples_a[:count] - samples_b[:count]).sum())
	return (diff // count) < threshold

#============================================

def remove_similar(timeline: Timeline, threshold: int = SIMILAR_THRESHOLD) -> bool:
	"""
	Drop frames that look like the frame before them in the source order,
	adding each dropped duration to the surviving frame.
	"""
	if len(timeline) <= 2:
		return False
	frames = timeline.frames
	kept = [frames[0]]
	for index in range(1, len(frames)):
		if frames_are_similar(frames[index - 1].image, frames[index].image, threshold):
			kept[-1].duration += frames[index].duration
		else:
			kept.append(frames[index])
	changed = len(kept) != len(frames)
	timeline.frames = kept
	return changed

#============================================

def remove_static_sequences(timeline: Timeline,
	threshold: int = STATIC_THRESHOLD) -> bool:
	"""
	Like remove_similar, but each frame is compared with the last frame
	kept so far, so a slow drift inside a static run is still folded.
	"""
	if len(timeline) <= 1:
		return False
	frames = timeline.frames
	kept = [frames[0]]
	for frame in frames[1:]:
		if frames_are_similar(kept[-1].image, frame.image, threshold):
			kept[-1].duration += frame.duration
		else:
			kept.append(frame)
	changed = len(kept) != len(frames)
	timeline.frames = kept
	return changed

#============================================

def merge_short_frames(timeline: Timeline,
	min_duration: float = SHORT_FRAME_SECONDS) -> bool:
	"""
	Fold each run of frames shorter than min_duration into one frame that
	shows the first image of the run for the run's total time.
	"""
	if len(timeline) <= 1:
		return False
	merged = []
	batch_image = None
	batch_duration = 0.0
	for frame in timeline.frames:
		if frame.duration < min_duration:
			if batch_image is None:
				batch_image = frame.image
			batch_duration += frame.duration
			continue
		if batch_image is not None:
			merged.append(Frame(batch_image, batch_duration))
			batch_image = None
			batch_duration = 0.0
		merged.append(frame)
	if batch_image is not None:
		merged.append(Frame(batch_image, batch_duration))
	changed = len(merged) != len(timeline)
	timeline.frames = merged
	return changed

#============================================

def reduce_frame_rate(timeline: Timeline, target_ratio: float) -> bool:
	"""
	Keep every k-th frame, k = ceil(1 / target_ratio), folding the
	durations of the skipped frames into the kept one.
	"""
	if not (0 < target_ratio < 1.0) or len(timeline) <= 2:
		return False
	keep_every = int(math.ceil(1.0 / target_ratio))
	frames = timeline.frames
	reduced = []
	for start in range(0, len(frames), keep_every):
		group = frames[start:start + keep_every]
		kept = group[0]
		kept.duration = sum(frame.duration for frame in group)
		reduced.append(kept)
	changed = len(reduced) != len(frames)
	timeline.frames = reduced
	return changed

#============================================

def estimate_size(timeline: Timeline) -> int:
	"""
	Planning estimate of the encoded GIF size in KB; 0 for an empty
	Timeline, at least 1 otherwise.
	"""
	if len(timeline) == 0:
		return 0
	(width, height) = timeline.size()
	bytes_per_frame = width * height * GIF_BYTES_PER_PIXEL
	total_bytes = bytes_per_frame * len(timeline)
	return max(1, int(total_bytes / 1024))

#============================================

def aggressive_optimize(timeline: Timeline, target_size_kb: int = 500) -> bool:
	if len(timeline) <= MIN_OPTIMIZE_FRAMES:
		return False
	original_count = len(timeline)
	remove_similar(timeline, threshold=STRICT_SIMILAR_THRESHOLD)
	remove_static_sequences(timeline)
	merge_short_frames(timeline, min_duration=SHORT_FRAME_SECONDS)
	estimated_kb = estimate_size(timeline)
	if estimated_kb > target_size_kb and estimated_kb > 0:
		ratio = utils.clamp(float(target_size_kb) / float(estimated_kb), 0.05, 0.95)
		reduce_frame_rate(timeline, ratio)
	if len(timeline) == original_count and target_size_kb <= STRICT_TARGET_KB:
		reduce_frame_rate(timeline, 0.5)
	return len(timeline) != original_count

#============================================

def _intersect(rect: tuple, width: int, height: int) -> tuple:
	(x, y, rect_width, rect_height) = rect
	left = max(0, int(x))
	top = max(0, int(y))
	right = min(width, int(x + rect_width))
	bottom = min(height, int(y + rect_height))
	if right <= left or bottom <= top:
		return None
	return (left, top, right, bottom)

#============================================

def crop(timeline: Timeline, rect: tuple) -> bool:
	"""
	Crop every frame to rect = (x, y, width, height), clipped to the
	image bounds. Frames the rect misses entirely are dropped; if that
	would drop every frame the Timeline is left alone.
	"""
	(_, _, rect_width, rect_height) = rect
	if rect_width <= 0 or rect_height <= 0:
		return False
	cropped = []
	for frame in timeline.frames:
		box = _intersect(rect, frame.width, frame.height)
		if box is None:
			continue
		cropped.append(Frame(frame.image.crop(box), frame.duration))
	if len(cropped) == 0:
		return False
	timeline.frames = cropped
	return True

#============================================

def resize(timeline: Timeline, max_width: int) -> bool:
	"""
	Scale every frame by max_width / first-frame width when the first
	frame is wider than max_width. A frame that cannot be scaled is kept
	at its old size.
	"""
	if max_width <= 0 or len(timeline) == 0:
		return False
	first_width = timeline.frames[0].width
	if first_width <= max_width:
		return False
	scale = float(max_width) / float(first_width)
	resized = []
	for frame in timeline.frames:
		new_width = int(frame.width * scale)
		new_height = int(frame.height * scale)
		if new_width < 1 or new_height < 1:
			utils.warn(f"cannot scale {frame.width}x{frame.height} frame by {scale:.4f}")
			resized.append(frame)
			continue
		try:
			image = frame.image.resize((new_width, new_height),
				resample=PIL.Image.LANCZOS)
		except (ValueError, OSError) as exc:
			utils.warn(f"frame resize failed, keeping original size: {exc}")
			resized.append(frame)
			continue
		resized.append(Frame(image, frame.duration))
	timeline.frames = resized
	return True
