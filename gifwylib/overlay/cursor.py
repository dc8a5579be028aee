#!/usr/bin/env python3

"""
Cursor highlight and click markers drawn over a recorded Timeline.

Events come from an outside capture device as (timestamp, screen x,
screen y, click) tuples. Screen coordinates have their origin at the
bottom-left of the screen; image rows count down from the top.
"""

import threading
from dataclasses import dataclass
import PIL.Image
import PIL.ImageDraw
from gifwylib.core.timeline import Frame
from gifwylib.core.timeline import Timeline

#============================================

CLICK_KINDS = (None, 'left', 'right')

#============================================

@dataclass(frozen=True)
class CursorEvent:
	timestamp: float
	x: float
	y: float
	click: str = None

	#============================
	@property
	def is_click(self) -> bool:
		return self.click is not None

#============================================

@dataclass(frozen=True)
class OverlayOptions:
	highlight_radius: float = 30.0
	highlight_color: tuple = (255, 255, 0, 77)
	left_click_color: tuple = (255, 0, 0, 128)
	right_click_color: tuple = (0, 0, 255, 128)
	click_radius: float = 20.0
	click_fade_duration: float = 0.3

#============================================

class EventLog():
	"""
	Append-only event buffer shared by one capture thread and one reader.
	Readers only ever see a copy.
	"""
	def __init__(self):
		self._events = []
		self._lock = threading.Lock()

	#============================
	def append(self, event: CursorEvent) -> None:
		if event.click not in CLICK_KINDS:
			raise RuntimeError(f"unknown click kind: {event.click}")
		with self._lock:
			self._events.append(event)

	#============================
	def snapshot(self) -> tuple:
		with self._lock:
			return tuple(self._events)

	#============================
	def clear(self) -> None:
		with self._lock:
			self._events = []

	#============================
	def __len__(self) -> int:
		with self._lock:
			return len(self._events)

#============================================

def _frame_start_times(timeline: Timeline) -> list:
	times = []
	elapsed = 0.0
	for frame in timeline.frames:
		times.append(elapsed)
		elapsed += frame.duration
	return times

#============================================

def _to_image_coords(event: CursorEvent, region: tuple, scale: float,
	image_height: int) -> tuple:
	(region_x, region_y) = (region[0], region[1])
	x = (event.x - region_x) * scale
	y = image_height - (event.y - region_y) * scale
	return (x, y)

#============================================

def _ellipse_box(center: tuple, radius: float) -> list:
	(x, y) = center
	return [x - radius, y - radius, x + radius, y + radius]

#============================================

def _click_alpha(age: float, fade: float) -> float:
	# no fade window: a click is drawn solid only in the frames it falls in
	if fade <= 0:
		return 1.0
	return max(0.0, min(1.0, 1.0 - age / fade))

#============================================

def render_cursor_overlay(timeline: Timeline, events, region: tuple,
	scale: float, options: OverlayOptions = None) -> Timeline:
	"""
	Return a new Timeline with the cursor highlight and click markers
	drawn in. The input Timeline is not modified.

	Args:
		timeline: Frames to annotate.
		events: Iterable of CursorEvent, timestamps relative to frame 0.
		region: Captured screen region (x, y, width, height).
		scale: Image pixels per screen point.
		options: Colors, radii and click fade time.
	"""
	if options is None:
		options = OverlayOptions()
	events = list(events)
	result = Timeline([frame.copy() for frame in timeline.frames])
	if len(events) == 0:
		return result
	positions = [event for event in events if not event.is_click]
	clicks = [event for event in events if event.is_click]
	start_times = _frame_start_times(timeline)
	fade = max(0.0, options.click_fade_duration)
	for index, frame in enumerate(timeline.frames):
		frame_start = start_times[index]
		frame_end = frame_start + frame.duration
		position = None
		if len(positions) > 0:
			position = min(positions, key=lambda event: abs(event.timestamp - frame_start))
		active_clicks = [
			event for event in clicks
			if frame_start - fade <= event.timestamp <= frame_end
		]
		if position is None and len(active_clicks) == 0:
			continue
		image = frame.image.convert('RGBA')
		layer = PIL.Image.new('RGBA', image.size, (0, 0, 0, 0))
		draw = PIL.ImageDraw.Draw(layer)
		if position is not None:
			center = _to_image_coords(position, region, scale, image.height)
			radius = options.highlight_radius * scale
			draw.ellipse(_ellipse_box(center, radius), fill=options.highlight_color)
		for click in active_clicks:
			center = _to_image_coords(click, region, scale, image.height)
			alpha = _click_alpha(frame_start - click.timestamp, fade)
			radius = options.click_radius * scale * (1.0 + (1.0 - alpha) * 0.5)
			if click.click == 'left':
				color = options.left_click_color
			else:
				color = options.right_click_color
			faded = (color[0], color[1], color[2], int(round(color[3] * alpha)))
			draw.ellipse(_ellipse_box(center, radius), fill=faded)
		composed = PIL.Image.alpha_composite(image, layer)
		if frame.image.mode != 'RGBA':
			composed = composed.convert(frame.image.mode)
		result.frames[index] = Frame(composed, frame.duration)
	return result
