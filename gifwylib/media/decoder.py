#!/usr/bin/env python3

"""
Decoder capability consumed by the ingestion pipeline.

Implementations must be safe to call decode_frame_at() from several
worker threads at once for the same handle.
"""

from dataclasses import dataclass
import PIL.Image

#============================================

@dataclass(frozen=True)
class SourceHandle:
	path: str
	duration: float
	frame_rate: float
	width: int = None
	height: int = None

	#============================
	@property
	def has_video(self) -> bool:
		return self.width is not None and self.height is not None

#============================================

class Decoder():
	def open_source(self, path: str) -> SourceHandle:
		raise NotImplementedError

	#============================
	def duration(self, handle: SourceHandle) -> float:
		return handle.duration

	#============================
	def native_frame_rate(self, handle: SourceHandle) -> float:
		return handle.frame_rate

	#============================
	def native_size(self, handle: SourceHandle):
		"""(width, height) of the video stream, or None without one."""
		if not handle.has_video:
			return None
		return (handle.width, handle.height)

	#============================
	def decode_frame_at(self, handle: SourceHandle, timestamp: float,
		size: tuple = None) -> PIL.Image.Image:
		raise NotImplementedError

	#============================
	def close(self, handle: SourceHandle) -> None:
		return
