#!/usr/bin/env python3

"""
Adjacent duplicate removal for freshly decoded frames.

This check is coarser than frame_ops.frames_are_similar: it samples a
32x32 pixel grid and calls two frames different once more than 10% of
the sampled pixels move by more than 32 in any channel.
"""

import asyncio
import numpy
import PIL.Image

#============================================

GRID_SIZE = 32
CHANNEL_DELTA = 32
YIELD_EVERY = 10

#============================================

def grid_samples(image: PIL.Image.Image, grid_size: int = GRID_SIZE) -> numpy.ndarray:
	pixels = numpy.asarray(image.convert('RGB'), dtype=numpy.int16)
	step_x = max(1, image.width // grid_size)
	step_y = max(1, image.height // grid_size)
	return pixels[::step_y, ::step_x].reshape(-1, 3)

#============================================

def images_differ(image_a: PIL.Image.Image, image_b: PIL.Image.Image) -> bool:
	if image_a.size != image_b.size:
		return True
	samples_a = grid_samples(image_a)
	samples_b = grid_samples(image_b)
	count = min(len(samples_a), len(samples_b))
	if count == 0:
		return True
	delta = numpy.abs(samples_a[:count] - samples_b[:count])
	changed = int(numpy.count_nonzero((delta > CHANNEL_DELTA).any(axis=1)))
	return changed > count // 10

#============================================

async def remove_duplicate_frames(frames: list, token=None) -> list:
	"""
	Fold each frame that matches the last kept frame into it, adding its
	duration. Yields to the event loop every few frames and checks the
	cancellation token there.
	"""
	if len(frames) <= 2:
		return list(frames)
	unique = [frames[0]]
	for index in range(1, len(frames)):
		frame = frames[index]
		if images_differ(unique[-1].image, frame.image):
			unique.append(frame)
		else:
			unique[-1].duration += frame.duration
		if index % YIELD_EVERY == 0:
			await asyncio.sleep(0)
			if token is not None:
				token.raise_if_cancelled()
	return unique
