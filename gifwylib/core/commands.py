#!/usr/bin/env python3

"""
Reversible edits over a Timeline.

A command is captured once against the Timeline it will edit. Capture
records what invert() needs (a frame snapshot, a duration vector, or
nothing for self-inverse edits) and fixes memory_cost in bytes. apply()
and invert() are then called strictly in LIFO order by the history
stack, so the Timeline seen by invert() is always the one apply() left.
"""

from gifwylib.core import frame_ops
from gifwylib.core.timeline import Timeline
from gifwylib.overlay import cursor

#============================================

DURATION_BYTES = 8
FIXED_COST_BYTES = 16

#============================================

class EditCommand():
	label = "edit"

	def __init__(self):
		self.memory_cost = 0
		self.captured = False

	#============================
	def capture(self, timeline: Timeline) -> None:
		self._capture(timeline)
		self.captured = True

	#============================
	def apply(self, timeline: Timeline) -> None:
		if not self.captured:
			raise RuntimeError(f"{self.label}: apply() called before capture()")
		self._apply(timeline)

	#============================
	def invert(self, timeline: Timeline) -> None:
		if not self.captured:
			raise RuntimeError(f"{self.label}: invert() called before capture()")
		self._invert(timeline)

	#============================
	@property
	def is_noop(self) -> bool:
		"""True when capture found nothing this command would change."""
		return False

	#============================
	def _capture(self, timeline: Timeline) -> None:
		raise NotImplementedError

	#============================
	def _apply(self, timeline: Timeline) -> None:
		raise NotImplementedError

	#============================
	def _invert(self, timeline: Timeline) -> None:
		raise NotImplementedError

	#============================
	def __repr__(self) -> str:
		return f"<{self.__class__.__name__} {self.label!r} {self.memory_cost}B>"

#============================================
# snapshot-backed commands
#============================================

class SnapshotCommand(EditCommand):
	"""Keeps a full pre-image of the frame list."""

	def _capture(self, timeline: Timeline) -> None:
		self._before = timeline.snapshot()
		self.memory_cost = sum(frame.byte_size for frame in self._before)

	#============================
	def _invert(self, timeline: Timeline) -> None:
		timeline.restore(self._before)

#============================================

class TrimCommand(SnapshotCommand):
	def __init__(self, start: int, stop: int):
		super().__init__()
		self.start = start
		self.stop = stop
		self.label = f"Trim ({max(0, stop - start)} frames)"

	def _apply(self, timeline: Timeline) -> None:
		frame_ops.trim(timeline, self.start, self.stop)

#============================================

class CropCommand(SnapshotCommand):
	def __init__(self, rect: tuple):
		super().__init__()
		self.rect = tuple(rect)
		self.label = f"Crop {int(self.rect[2])}x{int(self.rect[3])}"

	def _apply(self, timeline: Timeline) -> None:
		frame_ops.crop(timeline, self.rect)

#============================================

class ResizeCommand(SnapshotCommand):
	def __init__(self, max_width: int):
		super().__init__()
		self.max_width = max_width
		self.label = f"Resize to {max_width}px"

	def _apply(self, timeline: Timeline) -> None:
		frame_ops.resize(timeline, self.max_width)

#============================================

class RemoveSimilarCommand(SnapshotCommand):
	def __init__(self, threshold: int = frame_ops.SIMILAR_THRESHOLD):
		super().__init__()
		self.threshold = threshold
		self.label = "Remove similar frames"

	def _apply(self, timeline: Timeline) -> None:
		frame_ops.remove_similar(timeline, threshold=self.threshold)

#============================================

class RemoveStaticCommand(SnapshotCommand):
	label = "Compact static runs"

	def _apply(self, timeline: Timeline) -> None:
		frame_ops.remove_static_sequences(timeline)

#============================================

class MergeShortFramesCommand(SnapshotCommand):
	def __init__(self, min_duration: float = frame_ops.SHORT_FRAME_SECONDS):
		super().__init__()
		self.min_duration = min_duration
		self.label = f"Merge frames under {min_duration * 1000:.0f}ms"

	def _apply(self, timeline: Timeline) -> None:
		frame_ops.merge_short_frames(timeline, min_duration=self.min_duration)

#============================================

class ReduceFrameRateCommand(SnapshotCommand):
	def __init__(self, target_ratio: float):
		super().__init__()
		self.target_ratio = target_ratio
		self.label = f"Reduce frame rate to {target_ratio * 100:.0f}%"

	def _apply(self, timeline: Timeline) -> None:
		frame_ops.reduce_frame_rate(timeline, self.target_ratio)

#============================================

class AggressiveOptimizeCommand(SnapshotCommand):
	def __init__(self, target_size_kb: int):
		super().__init__()
		self.target_size_kb = target_size_kb
		self.label = f"Optimize for {target_size_kb}KB"

	def _apply(self, timeline: Timeline) -> None:
		frame_ops.aggressive_optimize(timeline, target_size_kb=self.target_size_kb)

#============================================

class CursorOverlayCommand(SnapshotCommand):
	label = "Cursor highlights"

	def __init__(self, events: list, region: tuple, scale: float,
		options: cursor.OverlayOptions = None):
		super().__init__()
		self.events = tuple(events)
		self.region = tuple(region)
		self.scale = scale
		self.options = options

	def _apply(self, timeline: Timeline) -> None:
		rendered = cursor.render_cursor_overlay(timeline, self.events,
			self.region, self.scale, self.options)
		timeline.frames = rendered.frames

#============================================
# delete commands keep only the removed frames
#============================================

class DeleteFrameCommand(EditCommand):
	def __init__(self, index: int):
		super().__init__()
		self.index = index
		self.label = f"Delete frame {index + 1}"
		self._removed = None

	def _capture(self, timeline: Timeline) -> None:
		self._removed = None
		if len(timeline) > 1 and 0 <= self.index < len(timeline):
			self._removed = timeline.frames[self.index].copy()
			self.memory_cost = self._removed.byte_size

	def _apply(self, timeline: Timeline) -> None:
		if self._removed is None:
			return
		frame_ops.delete_frame(timeline, self.index)

	def _invert(self, timeline: Timeline) -> None:
		if self._removed is None:
			return
		timeline.frames.insert(self.index, self._removed.copy())

	@property
	def is_noop(self) -> bool:
		return self.captured and self._removed is None

#============================================

class DeleteRangeCommand(EditCommand):
	def __init__(self, start: int, stop: int):
		super().__init__()
		self.start = start
		self.stop = stop
		self.label = f"Delete frames {start + 1}-{stop}"
		self._removed = []
		self._at = 0

	def _capture(self, timeline: Timeline) -> None:
		(start, stop) = frame_ops.clamp_range(timeline, self.start, self.stop)
		self._at = start
		self._removed = []
		if stop > start and len(timeline) - (stop - start) >= 1:
			self._removed = [frame.copy() for frame in timeline.frames[start:stop]]
		self.memory_cost = sum(frame.byte_size for frame in self._removed)

	def _apply(self, timeline: Timeline) -> None:
		if len(self._removed) == 0:
			return
		frame_ops.delete_range(timeline, self.start, self.stop)

	def _invert(self, timeline: Timeline) -> None:
		if len(self._removed) == 0:
			return
		restored = [frame.copy() for frame in self._removed]
		timeline.frames[self._at:self._at] = restored

	@property
	def is_noop(self) -> bool:
		return self.captured and len(self._removed) == 0

#============================================
# duration-only commands
#============================================

class DurationCommand(EditCommand):
	"""Keeps the duration vector only; pixels are never touched."""

	def _capture(self, timeline: Timeline) -> None:
		self._durations = timeline.durations()
		self.memory_cost = DURATION_BYTES * len(self._durations)

	def _invert(self, timeline: Timeline) -> None:
		timeline.set_durations(self._durations)

#============================================

class AdjustSpeedCommand(DurationCommand):
	def __init__(self, multiplier: float):
		super().__init__()
		self.multiplier = multiplier
		self.label = f"Speed {int(multiplier * 100)}%"

	def _apply(self, timeline: Timeline) -> None:
		frame_ops.adjust_speed(timeline, self.multiplier)

#============================================

class SetDurationCommand(DurationCommand):
	def __init__(self, duration: float, index: int = None):
		super().__init__()
		self.duration = duration
		self.index = index
		if index is None:
			self.label = "Set all frame durations"
		else:
			self.label = f"Set frame {index + 1} duration"

	def _apply(self, timeline: Timeline) -> None:
		if self.index is None:
			frame_ops.set_all_duration(timeline, self.duration)
		else:
			frame_ops.set_frame_duration(timeline, self.index, self.duration)

#============================================
# order changes
#============================================

REORDER_KINDS = ('reverse', 'yoyo', 'remove_even', 'remove_odd', 'remove_every_nth')

REORDER_LABELS = {
	'reverse': "Reverse",
	'yoyo': "Yoyo",
	'remove_even': "Keep even frames",
	'remove_odd': "Keep odd frames",
}

#============================================

class ReorderCommand(EditCommand):
	"""
	reverse and yoyo invert without stored pixels; the thinning kinds
	keep a frame snapshot because they discard frames and durations.
	"""
	def __init__(self, kind: str, n: int = None):
		super().__init__()
		if kind not in REORDER_KINDS:
			raise RuntimeError(f"unknown reorder kind: {kind}")
		if kind == 'remove_every_nth' and n is None:
			raise RuntimeError("remove_every_nth requires n")
		self.kind = kind
		self.n = n
		if kind == 'remove_every_nth':
			self.label = f"Remove every {n}th frame"
		else:
			self.label = REORDER_LABELS[kind]
		self._before = None
		self._length = 0

	def _capture(self, timeline: Timeline) -> None:
		self._length = len(timeline)
		self._before = None
		if self.kind in ('reverse', 'yoyo'):
			self.memory_cost = FIXED_COST_BYTES
			return
		self._before = timeline.snapshot()
		self.memory_cost = sum(frame.byte_size for frame in self._before)

	def _apply(self, timeline: Timeline) -> None:
		if self.kind == 'reverse':
			frame_ops.reverse(timeline)
		elif self.kind == 'yoyo':
			frame_ops.yoyo(timeline)
		elif self.kind == 'remove_even':
			frame_ops.remove_even(timeline)
		elif self.kind == 'remove_odd':
			frame_ops.remove_odd(timeline)
		elif self.kind == 'remove_every_nth':
			frame_ops.remove_every_nth(timeline, self.n)

	def _invert(self, timeline: Timeline) -> None:
		if self.kind == 'reverse':
			frame_ops.reverse(timeline)
		elif self.kind == 'yoyo':
			del timeline.frames[self._length:]
		else:
			timeline.restore(self._before)
