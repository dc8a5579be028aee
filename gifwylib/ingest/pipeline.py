#!/usr/bin/env python3

"""
Video to Timeline ingestion.

The pipeline walks Idle -> Analyzing -> ComputingSettings -> Extracting
-> PostProcessing -> Done. Cancellation is cooperative: the token is
polled at every batch boundary and at the post-processing yield points,
and a cancelled run never hands back a Timeline.
"""

import asyncio
import enum
import math
import threading
from dataclasses import dataclass
from dataclasses import field
from gifwylib.core import frame_ops
from gifwylib.core import utils
from gifwylib.core.errors import Cancelled
from gifwylib.core.errors import DecodeError
from gifwylib.core.errors import EmptyResult
from gifwylib.core.errors import NoVideoTrack
from gifwylib.core.errors import TooShort
from gifwylib.core.timeline import Frame
from gifwylib.core.timeline import Timeline
from gifwylib.ingest import dedupe
from gifwylib.ingest import settings as ingest_settings
from gifwylib.media.decoder import Decoder

#============================================

MIN_SOURCE_DURATION = 0.1
EXTRACT_BATCH_SIZE = 20

#============================================

class PipelineState(enum.Enum):
	IDLE = "idle"
	ANALYZING = "analyzing"
	COMPUTING_SETTINGS = "computing_settings"
	EXTRACTING = "extracting"
	POST_PROCESSING = "post_processing"
	DONE = "done"
	CANCELLED = "cancelled"
	ERROR = "error"

ACTIVE_STATES = (
	PipelineState.ANALYZING,
	PipelineState.COMPUTING_SETTINGS,
	PipelineState.EXTRACTING,
	PipelineState.POST_PROCESSING,
)

#============================================

class IngestStatus(enum.Enum):
	DONE = "done"
	CANCELLED = "cancelled"
	FAILED = "failed"

#============================================

class CancellationToken():
	"""Thread-safe flag that may be set from any thread."""
	def __init__(self):
		self._event = threading.Event()

	#============================
	def cancel(self) -> None:
		self._event.set()

	#============================
	@property
	def cancelled(self) -> bool:
		return self._event.is_set()

	#============================
	def raise_if_cancelled(self) -> None:
		if self._event.is_set():
			raise Cancelled("import cancelled")

#============================================

@dataclass
class ExtractionJob:
	source: str
	target_fps: float = 15.0
	max_frames: int = ingest_settings.MAX_EXTRACT_FRAMES
	max_dimension: int = None
	batch_size: int = EXTRACT_BATCH_SIZE
	min_duration: float = MIN_SOURCE_DURATION
	optimize_target_kb: int = None
	token: CancellationToken = field(default_factory=CancellationToken)
	progress: tuple = (0.0, "")

	#============================
	@classmethod
	def from_settings(cls, source: str, ingest: dict, **overrides) -> 'ExtractionJob':
		values = {
			'target_fps': ingest['target_fps'],
			'max_frames': ingest['max_frames'],
			'max_dimension': ingest['max_dimension'],
			'batch_size': ingest['batch_size'],
			'min_duration': ingest['min_duration'],
		}
		values.update(overrides)
		return cls(source=source, **values)

#============================================

@dataclass(frozen=True)
class IngestResult:
	status: IngestStatus
	timeline: Timeline
	message: str
	error: Exception = None

	#============================
	@property
	def ok(self) -> bool:
		return self.status == IngestStatus.DONE

	#============================
	@property
	def cancelled(self) -> bool:
		return self.status == IngestStatus.CANCELLED

#============================================

class IngestionPipeline():
	def __init__(self, decoder: Decoder, progress_callback=None):
		self.decoder = decoder
		self.progress_callback = progress_callback
		self.state = PipelineState.IDLE

	#============================
	async def run(self, job: ExtractionJob) -> IngestResult:
		if self.state in ACTIVE_STATES:
			raise RuntimeError("pipeline is already running a job")
		self.state = PipelineState.IDLE
		handle = None
		try:
			self._set_state(PipelineState.ANALYZING, job, 0.1, "Analyzing video...")
			handle = await asyncio.to_thread(self.decoder.open_source, job.source)
			timeline = await self._process(job, handle)
		except Cancelled:
			self.state = PipelineState.CANCELLED
			self._report(job, 0.0, "Import cancelled")
			return IngestResult(IngestStatus.CANCELLED, None, "Import cancelled")
		except (NoVideoTrack, TooShort, EmptyResult, DecodeError) as exc:
			self.state = PipelineState.ERROR
			message = self._failure_message(exc)
			self._report(job, 0.0, message)
			utils.warn(f"import of {job.source} failed: {message}")
			return IngestResult(IngestStatus.FAILED, None, message, exc)
		except asyncio.CancelledError:
			self.state = PipelineState.CANCELLED
			raise
		except Exception:
			self.state = PipelineState.ERROR
			raise
		finally:
			if handle is not None:
				self.decoder.close(handle)
		self._set_state(PipelineState.DONE, job, 1.0, "Done")
		return IngestResult(IngestStatus.DONE, timeline,
			f"Imported {len(timeline)} frames")

	#============================
	async def _process(self, job: ExtractionJob, handle) -> Timeline:
		size = self.decoder.native_size(handle)
		if size is None:
			raise NoVideoTrack(f"no video track in {job.source}")
		duration = self.decoder.duration(handle)
		if duration is None or not math.isfinite(duration) or duration < job.min_duration:
			raise TooShort(f"video is too short ({duration or 0.0:.2f}s)")
		native_fps = self.decoder.native_frame_rate(handle)
		job.token.raise_if_cancelled()

		self._set_state(PipelineState.COMPUTING_SETTINGS, job, 0.2,
			"Computing extraction settings...")
		settings = ingest_settings.compute_settings(native_fps, size, job.target_fps,
			max_frames=job.max_frames, max_dimension=job.max_dimension)
		utils.log(f"sampling every {settings.sample_step:.3f}s at "
			f"{settings.target_size[0]}x{settings.target_size[1]}")
		job.token.raise_if_cancelled()

		self._set_state(PipelineState.EXTRACTING, job, 0.3, "Extracting frames...")
		decoded = await self._extract(job, handle, duration, settings)

		self._set_state(PipelineState.POST_PROCESSING, job, 0.8, "Post-processing frames...")
		return await self._post_process(job, decoded, settings)

	#============================
	async def _extract(self, job: ExtractionJob, handle, duration: float,
		settings: ingest_settings.ExtractionSettings) -> list:
		timestamps = ingest_settings.sample_timestamps(duration, settings)
		total = len(timestamps)
		decoded = []
		done = 0
		for batch in ingest_settings.chunked(timestamps, max(1, job.batch_size)):
			job.token.raise_if_cancelled()
			results = await asyncio.gather(*[
				self._decode_one(handle, timestamp, settings.target_size)
				for timestamp in batch
			])
			decoded.extend(result for result in results if result is not None)
			done += len(batch)
			last_time = batch[-1]
			self._report(job, 0.3 + 0.5 * done / total,
				f"Extracting frames... {last_time:.1f}/{duration:.1f}s ({done}/{total})")
			await asyncio.sleep(0)
		job.token.raise_if_cancelled()
		if len(decoded) == 0:
			raise EmptyResult(f"no frames could be decoded from {job.source}")
		if len(decoded) < total:
			utils.log(f"skipped {total - len(decoded)} of {total} frames that failed to decode")
		return decoded

	#============================
	async def _decode_one(self, handle, timestamp: float, size: tuple):
		try:
			image = await asyncio.to_thread(self.decoder.decode_frame_at,
				handle, timestamp, size)
		except Cancelled:
			raise
		except Exception as exc:
			# one bad timestamp only costs that frame
			utils.warn(f"frame at {timestamp:.3f}s failed to decode: {exc}")
			return None
		return (timestamp, image)

	#============================
	async def _post_process(self, job: ExtractionJob, decoded: list,
		settings: ingest_settings.ExtractionSettings) -> Timeline:
		# decode completion order is not source order
		decoded = sorted(decoded, key=lambda item: item[0])
		frames = [Frame(image, settings.sample_step) for (_, image) in decoded]
		await asyncio.sleep(0)
		job.token.raise_if_cancelled()
		frames = await dedupe.remove_duplicate_frames(frames, job.token)
		self._report(job, 0.9, f"Kept {len(frames)} of {len(decoded)} frames")
		timeline = Timeline(frames)
		frame_ops.set_all_duration(timeline, 1.0 / job.target_fps)
		await asyncio.sleep(0)
		job.token.raise_if_cancelled()
		if job.optimize_target_kb is not None:
			frame_ops.aggressive_optimize(timeline, target_size_kb=job.optimize_target_kb)
			self._report(job, 0.95, f"Optimized to {len(timeline)} frames")
		return timeline

	#============================
	def _failure_message(self, exc: Exception) -> str:
		if isinstance(exc, NoVideoTrack):
			return "No video track found"
		if isinstance(exc, TooShort):
			return "Video is too short"
		if isinstance(exc, EmptyResult):
			return "No frames were extracted"
		return f"Could not read video: {exc}"

	#============================
	def _set_state(self, state: PipelineState, job: ExtractionJob,
		fraction: float, text: str) -> None:
		self.state = state
		self._report(job, fraction, text)

	#============================
	def _report(self, job: ExtractionJob, fraction: float, text: str) -> None:
		job.progress = (fraction, text)
		if self.progress_callback is not None:
			self.progress_callback(fraction, text)

#============================================

def ingest_video(source: str, decoder: Decoder, job: ExtractionJob = None,
	progress_callback=None) -> IngestResult:
	"""Run one ingestion job to completion on a fresh event loop."""
	if job is None:
		job = ExtractionJob(source=source)
	pipeline = IngestionPipeline(decoder, progress_callback=progress_callback)
	return asyncio.run(pipeline.run(job))
