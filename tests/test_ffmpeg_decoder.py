"""
Pytest coverage for the ffmpeg-backed frame decoder.
"""

# Standard Library
import json
import os
import shutil
import subprocess
import sys
import tempfile
import types

# PIP3 modules
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from gifwylib.core import utils
from gifwylib.core.errors import DecodeError
from gifwylib.ingest.pipeline import ExtractionJob
from gifwylib.ingest.pipeline import ingest_video
from gifwylib.media import ffmpeg_decoder

#============================================

REQUIRED_TOOLS = ("ffmpeg", "ffprobe")
MISSING_TOOLS = [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]
HAVE_TOOLS = len(MISSING_TOOLS) == 0
SKIP_TOOLS_REASON = f"missing tools: {', '.join(MISSING_TOOLS)}"

#============================================

@pytest.fixture(autouse=True)
def quiet_output():
	utils.set_quiet_mode(True)
	yield
	utils.set_quiet_mode(False)

#============================================

def _fake_probe(monkeypatch, payload: dict) -> None:
	def fake_run(cmd, text=True, show=True):
		return types.SimpleNamespace(stdout=json.dumps(payload), returncode=0)
	monkeypatch.setattr(ffmpeg_decoder.utils, "run_process", fake_run)

#============================================

@pytest.mark.parametrize("value,expected", [
	("30/1", 30.0),
	("30000/1001", 30000.0 / 1001.0),
	("0/0", 0.0),
	("25", 25.0),
])
def test_fps_fraction_to_float(value: str, expected: float) -> None:
	assert ffmpeg_decoder.fps_fraction_to_float(value) == pytest.approx(expected)

#============================================

def test_probe_source_reads_video_stream(monkeypatch) -> None:
	_fake_probe(monkeypatch, {
		"format": {"duration": "2.500000"},
		"streams": [
			{"codec_type": "audio", "duration": "2.4"},
			{"codec_type": "video", "width": 640, "height": 360,
				"avg_frame_rate": "0/0", "r_frame_rate": "24000/1001"},
		],
	})
	info = ffmpeg_decoder.probe_source("clip.mov")
	assert info["duration"] == pytest.approx(2.5)
	assert info["width"] == 640
	assert info["height"] == 360
	assert info["fps"] == pytest.approx(23.976, abs=0.001)

#============================================

def test_probe_source_without_video(monkeypatch) -> None:
	_fake_probe(monkeypatch, {
		"format": {"duration": "3.0"},
		"streams": [{"codec_type": "audio"}],
	})
	info = ffmpeg_decoder.probe_source("voice.m4a")
	assert info["width"] is None
	assert info["fps"] == 0.0

#============================================

def test_decode_failure_carries_timestamp(monkeypatch) -> None:
	monkeypatch.setattr(ffmpeg_decoder.shutil, "which", lambda name: f"/usr/bin/{name}")

	def failing_run(cmd, text=True, show=True):
		raise RuntimeError("ffmpeg exited 1")

	monkeypatch.setattr(ffmpeg_decoder.utils, "run_process", failing_run)
	decoder = ffmpeg_decoder.FfmpegDecoder()
	handle = ffmpeg_decoder.SourceHandle(path="clip.mov", duration=1.0,
		frame_rate=30.0, width=64, height=36)
	with pytest.raises(DecodeError) as excinfo:
		decoder.decode_frame_at(handle, 0.5)
	assert excinfo.value.timestamp == 0.5

#============================================

def test_missing_tool_is_reported(monkeypatch) -> None:
	monkeypatch.setattr(ffmpeg_decoder.shutil, "which", lambda name: None)
	with pytest.raises(DecodeError):
		ffmpeg_decoder.FfmpegDecoder()

#============================================

@pytest.mark.skipif(not HAVE_TOOLS, reason=SKIP_TOOLS_REASON)
def test_ingest_generated_clip() -> None:
	with tempfile.TemporaryDirectory() as temp_dir:
		source_path = os.path.join(temp_dir, "source.mp4")
		cmd = [
			"ffmpeg", "-y", "-v", "error",
			"-f", "lavfi", "-i", "testsrc=size=160x120:rate=30",
			"-t", "1", "-c:v", "mpeg4", "-pix_fmt", "yuv420p",
			source_path,
		]
		subprocess.run(cmd, check=True, stdout=subprocess.DEVNULL,
			stderr=subprocess.DEVNULL)
		job = ExtractionJob(source=source_path, batch_size=5)
		result = ingest_video(source_path, ffmpeg_decoder.FfmpegDecoder(), job=job)
		assert result.ok is True
		assert len(result.timeline) >= 1
		assert result.timeline.size() == (160, 120)

#============================================

def test_process_launch_failure_is_a_decode_error(monkeypatch) -> None:
	monkeypatch.setattr(ffmpeg_decoder.shutil, "which", lambda name: f"/usr/bin/{name}")

	def failing_launch(cmd, text=True, show=True):
		raise OSError(24, "Too many open files")

	monkeypatch.setattr(ffmpeg_decoder.utils, "run_process", failing_launch)
	decoder = ffmpeg_decoder.FfmpegDecoder()
	handle = ffmpeg_decoder.SourceHandle(path="clip.mov", duration=1.0,
		frame_rate=30.0, width=64, height=36)
	with pytest.raises(DecodeError) as excinfo:
		decoder.decode_frame_at(handle, 0.25)
	assert excinfo.value.timestamp == 0.25

#============================================

def test_probe_launch_failure_is_a_decode_error(tmp_path, monkeypatch) -> None:
	monkeypatch.setattr(ffmpeg_decoder.shutil, "which", lambda name: f"/usr/bin/{name}")

	def failing_launch(cmd, text=True, show=True):
		raise OSError(11, "Resource temporarily unavailable")

	monkeypatch.setattr(ffmpeg_decoder.utils, "run_process", failing_launch)
	source = tmp_path / "clip.mov"
	source.write_bytes(b"\x00")
	with pytest.raises(DecodeError):
		ffmpeg_decoder.FfmpegDecoder().open_source(str(source))
