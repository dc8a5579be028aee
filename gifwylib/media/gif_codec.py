#!/usr/bin/env python3

import io
from dataclasses import dataclass
import PIL.Image
import PIL.ImageSequence
from gifwylib.core import frame_ops
from gifwylib.core import utils
from gifwylib.core.errors import DecodeError
from gifwylib.core.errors import EncodeError
from gifwylib.core.timeline import Frame
from gifwylib.core.timeline import Timeline

#============================================

DEFAULT_GIF_DELAY = 0.1
MIN_GIF_DELAY = 0.01

#============================================

@dataclass(frozen=True)
class EncodeOptions:
	max_colors: int = 256
	dither: bool = True
	loop_count: int = 0
	max_width: int = None
	max_file_size_kb: int = None

	#============================
	@classmethod
	def from_settings(cls, encode_settings: dict) -> 'EncodeOptions':
		return cls(
			max_colors=encode_settings['max_colors'],
			dither=encode_settings['dither'],
			loop_count=encode_settings['loop_count'],
			max_width=encode_settings['max_width'],
			max_file_size_kb=encode_settings['max_file_size_kb'],
		)

#============================================

def _palette_frame(image: PIL.Image.Image, options: EncodeOptions) -> PIL.Image.Image:
	if options.dither:
		dither = PIL.Image.Dither.FLOYDSTEINBERG
	else:
		dither = PIL.Image.Dither.NONE
	return image.convert('RGB').quantize(colors=options.max_colors, dither=dither)

#============================================

def encode_gif(timeline: Timeline, options: EncodeOptions = None) -> bytes:
	"""
	Encode a Timeline as an animated GIF using Pillow's writer.

	The Timeline itself is not modified; max_width scaling is done on a
	copy.
	"""
	if options is None:
		options = EncodeOptions()
	if len(timeline) == 0:
		raise EncodeError("cannot encode an empty timeline")
	work = Timeline(timeline.snapshot())
	if options.max_width is not None:
		frame_ops.resize(work, options.max_width)
	images = []
	durations = []
	try:
		for frame in work.frames:
			images.append(_palette_frame(frame.image, options))
			# GIF delays are stored in 10ms units
			durations.append(max(10, int(round(frame.duration * 1000))))
		buffer = io.BytesIO()
		save_args = {
			'format': 'GIF',
			'save_all': True,
			'append_images': images[1:],
			'duration': durations,
			'disposal': 1,
		}
		if options.loop_count is not None:
			save_args['loop'] = options.loop_count
		images[0].save(buffer, **save_args)
	except (OSError, ValueError) as exc:
		raise EncodeError(f"GIF encode failed: {exc}") from exc
	data = buffer.getvalue()
	if options.max_file_size_kb is not None:
		size_kb = len(data) / 1024.0
		if size_kb > options.max_file_size_kb:
			raise EncodeError(
				f"encoded GIF is {size_kb:.0f}KB, over the {options.max_file_size_kb}KB limit")
	utils.log(f"encoded {len(images)} frames, {utils.format_bytes(len(data))}")
	return data

#============================================

def import_gif(path: str):
	"""
	Read an animated GIF into a Timeline, or None if no frame decodes.
	A missing or sub-10ms delay is read as 0.1 seconds.
	"""
	utils.ensure_file_exists(path)
	try:
		source = PIL.Image.open(path)
	except OSError as exc:
		raise DecodeError(f"cannot open {path}: {exc}") from exc
	frames = []
	with source:
		try:
			for image in PIL.ImageSequence.Iterator(source):
				delay_ms = image.info.get('duration')
				duration = DEFAULT_GIF_DELAY
				if delay_ms is not None and delay_ms / 1000.0 >= MIN_GIF_DELAY:
					duration = delay_ms / 1000.0
				frames.append(Frame(image.convert('RGBA'), duration))
		except (OSError, EOFError) as exc:
			utils.warn(f"stopped reading {path} after {len(frames)} frames: {exc}")
	if len(frames) == 0:
		return None
	return Timeline(frames)
