#!/usr/bin/env python3

import os
import re
import shlex
import subprocess
import sys

#============================================

MIN_FRAME_DURATION = 0.01
BASELINE_FPS = 15.0

_QUIET_MODE = False

#============================================

def set_quiet_mode(enabled: bool) -> None:
	global _QUIET_MODE
	_QUIET_MODE = bool(enabled)

#============================================

def is_quiet_mode() -> bool:
	return _QUIET_MODE

#============================================

def log(message: str) -> None:
	if _QUIET_MODE:
		return
	print(message)

#============================================

def warn(message: str) -> None:
	sys.stderr.write(f"warning: {message}\n")

#============================================

def run_process(cmd: list, text: bool = True,
	show: bool = True) -> subprocess.CompletedProcess:
	"""
	Run a subprocess command, raising on a non-zero exit.
	"""
	showcmd = shlex.join(cmd)
	showcmd = re.sub("  *", " ", showcmd)
	if show and not _QUIET_MODE:
		print(f"CMD: '{showcmd}'")
	proc = subprocess.run(cmd, capture_output=True, text=text)
	if proc.returncode != 0:
		stderr_text = proc.stderr
		if isinstance(stderr_text, bytes):
			stderr_text = stderr_text.decode("utf-8", errors="replace")
		raise RuntimeError(f"command failed: {showcmd}\n{stderr_text.strip()}")
	return proc

#============================================

def clamp_duration(value: float) -> float:
	return max(MIN_FRAME_DURATION, float(value))

#============================================

def clamp(value: float, low: float, high: float) -> float:
	return max(low, min(high, value))

#============================================

def ensure_file_exists(filepath: str) -> None:
	if not os.path.exists(filepath):
		raise RuntimeError(f"file not found: {filepath}")
	return

#============================================

def format_bytes(num_bytes: int) -> str:
	if num_bytes < 1024:
		return f"{num_bytes} B"
	if num_bytes < 1024 * 1024:
		return f"{num_bytes / 1024.0:.1f} KB"
	return f"{num_bytes / (1024.0 * 1024.0):.1f} MB"
