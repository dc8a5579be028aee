"""
Pytest coverage for the video ingestion pipeline, driven by an in-memory
decoder.
"""

# Standard Library
import asyncio
import os
import sys
import time

# PIP3 modules
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# tests helpers
TESTS_DIR = os.path.abspath(os.path.dirname(__file__))
if TESTS_DIR not in sys.path:
	sys.path.insert(0, TESTS_DIR)
from frame_factory import FakeDecoder

# local repo modules
from gifwylib.core import utils
from gifwylib.core.errors import EmptyResult
from gifwylib.core.errors import NoVideoTrack
from gifwylib.core.errors import TooShort
from gifwylib.ingest.pipeline import ExtractionJob
from gifwylib.ingest.pipeline import IngestionPipeline
from gifwylib.ingest.pipeline import IngestStatus
from gifwylib.ingest.pipeline import PipelineState
from gifwylib.ingest.pipeline import ingest_video

#============================================

@pytest.fixture(autouse=True)
def quiet_output():
	utils.set_quiet_mode(True)
	yield
	utils.set_quiet_mode(False)

#============================================

def _run(decoder, job: ExtractionJob, progress: list = None):
	callback = None
	if progress is not None:
		callback = lambda fraction, text: progress.append((fraction, text))
	pipeline = IngestionPipeline(decoder, progress_callback=callback)
	result = asyncio.run(pipeline.run(job))
	return (pipeline, result)

#============================================

def test_extracts_ordered_frames_at_target_rate() -> None:
	decoder = FakeDecoder(duration=1.95, fps=30.0)
	progress = []
	(pipeline, result) = _run(decoder, ExtractionJob(source="clip.mov"), progress)
	assert result.status == IngestStatus.DONE
	assert result.ok is True
	assert pipeline.state == PipelineState.DONE
	timeline = result.timeline
	# 30 fps source sampled at 15 fps over 1.95s
	assert len(timeline) == 30
	reds = [frame.image.getpixel((0, 0))[0] for frame in timeline]
	assert reds == [(100 * index) % 256 for index in range(30)]
	assert timeline.durations() == pytest.approx([1.0 / 15.0] * 30)
	assert decoder.requested_sizes == {(64, 36)}
	assert decoder.closed is True
	assert progress[-1] == (1.0, "Done")
	fractions = [fraction for fraction, _ in progress]
	assert fractions == sorted(fractions)

#============================================

def test_batches_bound_concurrent_decodes() -> None:
	decoder = FakeDecoder(duration=1.95, fps=30.0, delay=0.005)
	job = ExtractionJob(source="clip.mov", batch_size=4)
	(_, result) = _run(decoder, job)
	assert result.ok is True
	assert decoder.decode_calls == 30
	assert decoder.max_in_flight <= 4

#============================================

def test_frames_sorted_by_source_time_when_decodes_finish_out_of_order() -> None:
	class SlowEarlyDecoder(FakeDecoder):
		def decode_frame_at(self, handle, timestamp, size=None):
			time.sleep(max(0.0, 0.03 - timestamp * 0.05))
			return super().decode_frame_at(handle, timestamp, size)

	decoder = SlowEarlyDecoder(duration=0.6, fps=30.0)
	(_, result) = _run(decoder, ExtractionJob(source="clip.mov", batch_size=10))
	reds = [frame.image.getpixel((0, 0))[0] for frame in result.timeline]
	assert reds == [(100 * index) % 256 for index in range(len(reds))]

#============================================

def test_cancel_mid_extraction_returns_no_timeline() -> None:
	job = ExtractionJob(source="clip.mov", batch_size=4)

	def cancel_on_fifth(call_number: int) -> None:
		if call_number == 5:
			job.token.cancel()

	decoder = FakeDecoder(duration=1.95, fps=30.0, on_decode=cancel_on_fifth)
	(pipeline, result) = _run(decoder, job)
	assert result.status == IngestStatus.CANCELLED
	assert result.cancelled is True
	assert result.timeline is None
	assert result.error is None
	assert pipeline.state == PipelineState.CANCELLED
	assert decoder.decode_calls == 8
	assert decoder.closed is True

#============================================

def test_cancel_before_extraction() -> None:
	job = ExtractionJob(source="clip.mov")
	job.token.cancel()
	decoder = FakeDecoder()
	(pipeline, result) = _run(decoder, job)
	assert result.cancelled is True
	assert decoder.decode_calls == 0
	assert pipeline.state == PipelineState.CANCELLED

#============================================

def test_zero_duration_is_too_short() -> None:
	decoder = FakeDecoder(duration=0.0)
	(pipeline, result) = _run(decoder, ExtractionJob(source="clip.mov"))
	assert result.status == IngestStatus.FAILED
	assert result.cancelled is False
	assert isinstance(result.error, TooShort)
	assert result.message == "Video is too short"
	assert result.timeline is None
	assert pipeline.state == PipelineState.ERROR

#============================================

def test_missing_video_track() -> None:
	decoder = FakeDecoder(has_video=False)
	(_, result) = _run(decoder, ExtractionJob(source="audio.m4a"))
	assert result.status == IngestStatus.FAILED
	assert isinstance(result.error, NoVideoTrack)
	assert decoder.decode_calls == 0

#============================================

def test_all_decodes_failing_is_empty_result() -> None:
	decoder = FakeDecoder(duration=0.5, fail_all=True)
	progress = []
	(pipeline, result) = _run(decoder, ExtractionJob(source="clip.mov"), progress)
	assert result.status == IngestStatus.FAILED
	assert isinstance(result.error, EmptyResult)
	assert pipeline.state == PipelineState.ERROR
	assert progress[-1] == (0.0, "No frames were extracted")

#============================================

def test_single_bad_frames_are_skipped() -> None:
	decoder = FakeDecoder(duration=1.95, fps=30.0, fail_every=4)
	(_, result) = _run(decoder, ExtractionJob(source="clip.mov"))
	assert result.ok is True
	assert len(result.timeline) == 15

#============================================

def test_static_source_collapses_to_one_frame() -> None:
	decoder = FakeDecoder(duration=1.0, static=True)
	(_, result) = _run(decoder, ExtractionJob(source="clip.mov"))
	assert result.ok is True
	assert len(result.timeline) == 1
	assert result.timeline[0].duration == pytest.approx(1.0 / 15.0)

#============================================

def test_large_source_is_stepped_down() -> None:
	decoder = FakeDecoder(duration=0.3, fps=30.0, size=(4000, 2000))
	(_, result) = _run(decoder, ExtractionJob(source="clip.mov"))
	assert result.ok is True
	assert decoder.requested_sizes == {(1920, 960)}
	assert result.timeline.size() == (1920, 960)

#============================================

def test_max_dimension_caps_output_size() -> None:
	decoder = FakeDecoder(duration=0.3, fps=30.0, size=(640, 360))
	job = ExtractionJob(source="clip.mov", max_dimension=320)
	(_, result) = _run(decoder, job)
	assert decoder.requested_sizes == {(320, 180)}

#============================================

def test_optimize_target_runs_after_import() -> None:
	decoder = FakeDecoder(duration=1.95, fps=30.0)
	job = ExtractionJob(source="clip.mov", optimize_target_kb=10)
	(_, result) = _run(decoder, job)
	assert result.ok is True
	assert len(result.timeline) == 15
	assert result.timeline.total_duration() == pytest.approx(30 / 15.0)

#============================================

def test_ingest_video_wrapper_updates_job_progress() -> None:
	job = ExtractionJob(source="clip.mov")
	result = ingest_video("clip.mov", FakeDecoder(duration=0.5), job=job)
	assert result.ok is True
	assert job.progress == (1.0, "Done")

#============================================

def test_pipeline_can_run_again_after_failure() -> None:
	pipeline = IngestionPipeline(FakeDecoder(duration=0.0))
	first = asyncio.run(pipeline.run(ExtractionJob(source="a.mov")))
	assert first.status == IngestStatus.FAILED
	pipeline.decoder = FakeDecoder(duration=0.5)
	second = asyncio.run(pipeline.run(ExtractionJob(source="b.mov")))
	assert second.ok is True

#============================================

def test_unexpected_decoder_error_skips_only_that_frame() -> None:
	class FlakyDecoder(FakeDecoder):
		def decode_frame_at(self, handle, timestamp, size=None):
			if int(round(timestamp * self.fps)) == 6:
				raise OSError("Too many open files")
			return super().decode_frame_at(handle, timestamp, size)

	decoder = FlakyDecoder(duration=1.0, fps=30.0)
	(pipeline, result) = _run(decoder, ExtractionJob(source="clip.mov"))
	assert result.status == IngestStatus.DONE
	assert pipeline.state == PipelineState.DONE
	# 15 samples at source frames 0, 2, 4, ...; frame 6 is lost
	reds = [frame.image.getpixel((0, 0))[0] for frame in result.timeline]
	assert len(reds) == 14
	assert (6 * 50) % 256 not in reds
	assert decoder.closed is True
