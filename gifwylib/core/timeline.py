#!/usr/bin/env python3

import PIL.Image
from gifwylib.core import utils

#============================================

class Frame():
	"""
	One timed image. Images are treated as immutable: operations that
	change pixels build a new image instead of editing this one.
	"""
	__slots__ = ('image', 'duration')

	def __init__(self, image: PIL.Image.Image, duration: float):
		self.image = image
		self.duration = utils.clamp_duration(duration)

	#============================
	@property
	def width(self) -> int:
		return self.image.width

	#============================
	@property
	def height(self) -> int:
		return self.image.height

	#============================
	@property
	def byte_size(self) -> int:
		# RGBA estimate, independent of the storage mode
		return self.image.width * self.image.height * 4

	#============================
	def copy(self) -> 'Frame':
		return Frame(self.image, self.duration)

	#============================
	def __repr__(self) -> str:
		return f"Frame({self.width}x{self.height}, {self.duration:.3f}s)"

#============================================

class Timeline():
	"""
	Ordered frame sequence; list order is playback order.
	"""
	def __init__(self, frames: list = None):
		self.frames = []
		if frames is not None:
			self.frames = list(frames)

	#============================
	def __len__(self) -> int:
		return len(self.frames)

	#============================
	def __iter__(self):
		return iter(self.frames)

	#============================
	def __getitem__(self, index):
		return self.frames[index]

	#============================
	def is_empty(self) -> bool:
		return len(self.frames) == 0

	#============================
	def durations(self) -> list:
		return [frame.duration for frame in self.frames]

	#============================
	def total_duration(self) -> float:
		return sum(frame.duration for frame in self.frames)

	#============================
	def size(self) -> tuple:
		if len(self.frames) == 0:
			return (0, 0)
		first = self.frames[0]
		return (first.width, first.height)

	#============================
	def snapshot(self) -> list:
		"""Detached copy of the frame list; images are shared."""
		return [frame.copy() for frame in self.frames]

	#============================
	def restore(self, frames: list) -> None:
		self.frames = [frame.copy() for frame in frames]

	#============================
	def set_durations(self, durations: list) -> None:
		for frame, duration in zip(self.frames, durations):
			frame.duration = duration

	#============================
	def byte_size(self) -> int:
		return sum(frame.byte_size for frame in self.frames)

	#============================
	def __repr__(self) -> str:
		(width, height) = self.size()
		return (f"Timeline({len(self.frames)} frames, {width}x{height}, "
			f"{self.total_duration():.3f}s)")
