#!/usr/bin/env python3

import copy
import os
import yaml

#============================================

CONFIG_HEADER_KEY = "gifwy"
CONFIG_HEADER_VALUE = 1

#============================================

def default_config() -> dict:
	"""
	Build the default config dictionary.

	Returns:
		dict: Default config.
	"""
	return {
		CONFIG_HEADER_KEY: CONFIG_HEADER_VALUE,
		"settings": {
			"history": {
				"max_commands": 50,
				"max_memory_mb": 500,
			},
			"ingest": {
				"target_fps": 15,
				"max_frames": 3000,
				"batch_size": 20,
				"max_dimension": None,
				"min_duration": 0.1,
			},
			"optimize": {
				"target_size_kb": 500,
			},
			"encode": {
				"max_colors": 256,
				"dither": True,
				"loop_count": 0,
				"max_width": None,
				"max_file_size_kb": None,
			},
		},
	}

#============================================

def load_config(config_path: str) -> dict:
	"""
	Load a config file from disk.

	Args:
		config_path: Config file path.

	Returns:
		dict: Parsed config mapping.
	"""
	file_size = os.path.getsize(config_path)
	if file_size > 10 ** 6:
		raise RuntimeError("config file is larger than 1MB")
	with open(config_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle)
	if not isinstance(data, dict):
		raise RuntimeError("config file must be a mapping")
	if data.get(CONFIG_HEADER_KEY) != CONFIG_HEADER_VALUE:
		raise RuntimeError(
			f"config file must set {CONFIG_HEADER_KEY}: {CONFIG_HEADER_VALUE}")
	return data

#============================================

def write_config_file(config_path: str, config: dict) -> None:
	os.makedirs(os.path.dirname(config_path) or ".", exist_ok=True)
	with open(config_path, "w", encoding="utf-8") as handle:
		yaml.safe_dump(config, handle, sort_keys=False)
	return

#============================================

def coerce_float(value, config_path: str, key_path: str) -> float:
	if isinstance(value, bool):
		raise RuntimeError(f"config {config_path}: {key_path} must be a number")
	if isinstance(value, (int, float)):
		return float(value)
	if isinstance(value, str):
		try:
			return float(value)
		except ValueError:
			pass
	raise RuntimeError(f"config {config_path}: {key_path} must be a number")

#============================================

def coerce_int(value, config_path: str, key_path: str) -> int:
	if isinstance(value, bool):
		raise RuntimeError(f"config {config_path}: {key_path} must be an integer")
	if isinstance(value, int):
		return value
	if isinstance(value, float):
		return int(value)
	if isinstance(value, str):
		try:
			return int(float(value))
		except ValueError:
			pass
	raise RuntimeError(f"config {config_path}: {key_path} must be an integer")

#============================================

def coerce_bool(value, config_path: str, key_path: str) -> bool:
	if isinstance(value, bool):
		return value
	raise RuntimeError(f"config {config_path}: {key_path} must be true or false")

#============================================

def _optional(coerce, value, config_path: str, key_path: str):
	if value is None:
		return None
	return coerce(value, config_path, key_path)

#============================================

def _positive(value, config_path: str, key_path: str):
	if value is not None and value <= 0:
		raise RuntimeError(f"config {config_path}: {key_path} must be positive")
	return value

#============================================

def build_settings(config: dict, config_path: str = "<defaults>") -> dict:
	"""
	Normalize settings with defaults.

	Args:
		config: Raw config mapping, or None for defaults only.
		config_path: Config file path, used in error messages.

	Returns:
		dict: Normalized settings.
	"""
	settings = copy.deepcopy(default_config()["settings"])
	overrides = {}
	if isinstance(config, dict):
		overrides = config.get("settings") or {}
	if not isinstance(overrides, dict):
		raise RuntimeError(f"config {config_path}: settings must be a mapping")
	for section_name, section in overrides.items():
		if section_name not in settings:
			raise RuntimeError(f"config {config_path}: unknown section settings.{section_name}")
		if not isinstance(section, dict):
			raise RuntimeError(f"config {config_path}: settings.{section_name} must be a mapping")
		for key, value in section.items():
			if key not in settings[section_name]:
				raise RuntimeError(
					f"config {config_path}: unknown key settings.{section_name}.{key}")
			settings[section_name][key] = value

	history = settings["history"]
	history["max_commands"] = _positive(coerce_int(history["max_commands"],
		config_path, "settings.history.max_commands"),
		config_path, "settings.history.max_commands")
	history["max_memory_mb"] = _positive(coerce_float(history["max_memory_mb"],
		config_path, "settings.history.max_memory_mb"),
		config_path, "settings.history.max_memory_mb")

	ingest = settings["ingest"]
	for key in ("target_fps", "min_duration"):
		key_path = f"settings.ingest.{key}"
		ingest[key] = _positive(coerce_float(ingest[key], config_path, key_path),
			config_path, key_path)
	for key in ("max_frames", "batch_size"):
		key_path = f"settings.ingest.{key}"
		ingest[key] = _positive(coerce_int(ingest[key], config_path, key_path),
			config_path, key_path)
	ingest["max_dimension"] = _positive(_optional(coerce_int, ingest["max_dimension"],
		config_path, "settings.ingest.max_dimension"),
		config_path, "settings.ingest.max_dimension")

	optimize = settings["optimize"]
	optimize["target_size_kb"] = _positive(coerce_int(optimize["target_size_kb"],
		config_path, "settings.optimize.target_size_kb"),
		config_path, "settings.optimize.target_size_kb")

	encode = settings["encode"]
	encode["max_colors"] = coerce_int(encode["max_colors"], config_path,
		"settings.encode.max_colors")
	if not 2 <= encode["max_colors"] <= 256:
		raise RuntimeError(f"config {config_path}: settings.encode.max_colors must be 2-256")
	encode["dither"] = coerce_bool(encode["dither"], config_path, "settings.encode.dither")
	encode["loop_count"] = coerce_int(encode["loop_count"], config_path,
		"settings.encode.loop_count")
	for key in ("max_width", "max_file_size_kb"):
		key_path = f"settings.encode.{key}"
		encode[key] = _positive(_optional(coerce_int, encode[key], config_path, key_path),
			config_path, key_path)
	return settings
