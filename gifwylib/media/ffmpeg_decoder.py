#!/usr/bin/env python3

import io
import json
import os
import shutil
import PIL.Image
from gifwylib.core import utils
from gifwylib.core.errors import DecodeError
from gifwylib.media.decoder import Decoder
from gifwylib.media.decoder import SourceHandle

#============================================

def check_dependency(cmd_name: str) -> None:
	if shutil.which(cmd_name) is None:
		raise DecodeError(f"missing dependency: {cmd_name}")
	return

#============================================

def fps_fraction_to_float(value: str) -> float:
	"""
	Convert an ffprobe frame-rate fraction string to float.

	Args:
		value: Fraction string like "30000/1001" or "30/1".

	Returns:
		float: FPS value, 0.0 when unknown.
	"""
	text = str(value).strip()
	if "/" in text:
		num_text, den_text = text.split("/", 1)
		den = float(den_text)
		if den == 0:
			return 0.0
		return float(num_text) / den
	return float(text)

#============================================

def probe_source(input_file: str) -> dict:
	"""
	Probe container duration and the first video stream with ffprobe.

	Returns:
		dict: duration, fps, width, height (width/height None without video).
	"""
	cmd = [
		"ffprobe", "-v", "error",
		"-show_entries", "format=duration",
		"-show_entries", "stream=codec_type,width,height,r_frame_rate,avg_frame_rate,duration",
		"-of", "json",
		input_file,
	]
	proc = utils.run_process(cmd)
	data = json.loads(proc.stdout)
	video = None
	for stream in data.get("streams", []):
		if stream.get("codec_type") == "video":
			video = stream
			break
	duration = data.get("format", {}).get("duration")
	if duration is None and video is not None:
		duration = video.get("duration")
	info = {
		"duration": float(duration) if duration not in (None, "N/A") else 0.0,
		"fps": 0.0,
		"width": None,
		"height": None,
	}
	if video is None:
		return info
	width = int(video.get("width", 0))
	height = int(video.get("height", 0))
	if width > 0 and height > 0:
		info["width"] = width
		info["height"] = height
	fps_value = video.get("avg_frame_rate")
	if fps_value is None or fps_value == "0/0":
		fps_value = video.get("r_frame_rate")
	if fps_value is not None and fps_value != "0/0":
		info["fps"] = fps_fraction_to_float(fps_value)
	return info

#============================================

class FfmpegDecoder(Decoder):
	"""Seeks and decodes single frames with the ffmpeg command-line tools."""

	def __init__(self):
		check_dependency("ffmpeg")
		check_dependency("ffprobe")

	#============================
	def open_source(self, path: str) -> SourceHandle:
		if not os.path.isfile(path):
			raise DecodeError(f"file not found: {path}")
		try:
			info = probe_source(path)
		except (RuntimeError, ValueError, OSError) as exc:
			raise DecodeError(f"cannot probe {path}: {exc}") from exc
		return SourceHandle(path=path, duration=info["duration"],
			frame_rate=info["fps"], width=info["width"], height=info["height"])

	#============================
	def decode_frame_at(self, handle: SourceHandle, timestamp: float,
		size: tuple = None) -> PIL.Image.Image:
		cmd = [
			"ffmpeg", "-v", "error", "-nostdin",
			"-ss", f"{timestamp:.3f}",
			"-i", handle.path,
			"-frames:v", "1", "-an", "-sn",
		]
		if size is not None:
			cmd += ["-vf", f"scale={int(size[0])}:{int(size[1])}:flags=lanczos"]
		cmd += ["-f", "image2pipe", "-vcodec", "png", "-"]
		try:
			proc = utils.run_process(cmd, text=False, show=False)
		except (RuntimeError, OSError) as exc:
			raise DecodeError(str(exc), timestamp=timestamp) from exc
		if len(proc.stdout) == 0:
			raise DecodeError(f"no frame at {timestamp:.3f}s", timestamp=timestamp)
		try:
			image = PIL.Image.open(io.BytesIO(proc.stdout))
			image.load()
		except (OSError, ValueError) as exc:
			raise DecodeError(f"bad frame data at {timestamp:.3f}s: {exc}",
				timestamp=timestamp) from exc
		return image.convert('RGB')
