#!/usr/bin/env python3

import argparse
import os
from tqdm import tqdm
from gifwylib.core import config
from gifwylib.core import commands
from gifwylib.core import utils
from gifwylib.core.history import CommandStack
from gifwylib.ingest.pipeline import ExtractionJob
from gifwylib.ingest.pipeline import ingest_video
from gifwylib.media import gif_codec

#============================================

def parse_args():
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="Video to GIF editor")
	parser.add_argument('-i', '--input', dest='input_file',
		help='video or GIF file to import')
	parser.add_argument('-o', '--output', dest='output_file',
		help='GIF file to write')
	parser.add_argument('-c', '--config', dest='config_file',
		help='yaml settings file')
	parser.add_argument('--write-config', dest='write_config',
		help='write the default settings file to this path and exit')
	parser.add_argument('--fps', dest='fps', type=float,
		help='sampling rate for video import')
	parser.add_argument('-t', '--target-kb', dest='target_kb', type=int,
		help='optimize toward this output size in KB')
	parser.add_argument('-s', '--speed', dest='speed', type=float,
		help='playback speed multiplier')
	parser.add_argument('-w', '--max-width', dest='max_width', type=int,
		help='scale frames down to this width')
	parser.add_argument('-r', '--reverse', dest='reverse', action='store_true',
		help='play the frames backwards')
	parser.add_argument('-y', '--yoyo', dest='yoyo', action='store_true',
		help='append the frames backwards for a ping-pong loop')
	parser.add_argument('-q', '--quiet', dest='quiet', action='store_true',
		help='suppress status output')
	parser.set_defaults(reverse=False, yoyo=False, quiet=False)
	args = parser.parse_args()
	if args.write_config is None and (args.input_file is None or args.output_file is None):
		parser.error("--input and --output are required")
	return args

#============================================

def import_source(input_file: str, settings: dict, fps: float = None):
	if input_file.lower().endswith('.gif'):
		timeline = gif_codec.import_gif(input_file)
		if timeline is None:
			raise RuntimeError(f"no frames in {input_file}")
		return timeline
	# imported lazily so GIF-only runs work without ffmpeg
	from gifwylib.media.ffmpeg_decoder import FfmpegDecoder
	overrides = {}
	if fps is not None:
		overrides['target_fps'] = fps
	job = ExtractionJob.from_settings(input_file, settings['ingest'], **overrides)
	progress_bar = None
	if not utils.is_quiet_mode():
		progress_bar = tqdm(total=100, unit='%')

	def report(fraction: float, text: str) -> None:
		if progress_bar is None:
			return
		progress_bar.set_description(text)
		progress_bar.update(int(fraction * 100) - progress_bar.n)

	try:
		result = ingest_video(input_file, FfmpegDecoder(), job=job,
			progress_callback=report)
	finally:
		if progress_bar is not None:
			progress_bar.close()
	if not result.ok:
		raise RuntimeError(result.message)
	return result.timeline

#============================================

def build_edit_list(args, settings: dict) -> list:
	edits = []
	if args.max_width is not None:
		edits.append(commands.ResizeCommand(args.max_width))
	if args.speed is not None:
		edits.append(commands.AdjustSpeedCommand(args.speed))
	if args.reverse:
		edits.append(commands.ReorderCommand('reverse'))
	if args.yoyo:
		edits.append(commands.ReorderCommand('yoyo'))
	target_kb = args.target_kb
	if target_kb is None:
		target_kb = settings['optimize']['target_size_kb']
	edits.append(commands.AggressiveOptimizeCommand(target_kb))
	return edits

#============================================

def main():
	args = parse_args()
	utils.set_quiet_mode(args.quiet)
	if args.write_config is not None:
		config.write_config_file(args.write_config, config.default_config())
		utils.log(f"wrote {args.write_config}")
		return
	raw_config = None
	config_path = "<defaults>"
	if args.config_file is not None:
		raw_config = config.load_config(args.config_file)
		config_path = args.config_file
	settings = config.build_settings(raw_config, config_path)
	timeline = import_source(args.input_file, settings, fps=args.fps)
	utils.log(f"imported {timeline}")
	history = CommandStack(max_commands=settings['history']['max_commands'],
		max_memory_bytes=int(settings['history']['max_memory_mb'] * 1024 * 1024))
	for edit in build_edit_list(args, settings):
		state = history.execute(edit, timeline)
		utils.log(f"{state.message}: {timeline}")
	options = gif_codec.EncodeOptions.from_settings(settings['encode'])
	data = gif_codec.encode_gif(timeline, options)
	output_dir = os.path.dirname(args.output_file)
	if output_dir != "":
		os.makedirs(output_dir, exist_ok=True)
	with open(args.output_file, 'wb') as output:
		output.write(data)
	utils.log(f"wrote {args.output_file}")


if __name__ == '__main__':
	main()
